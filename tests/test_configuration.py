"""
tests/test_configuration.py
Unit tests for apiwizard.configuration.

Tests cover:
- Default configuration derived from the global template
- Built-in per-verb defaults
- Recursive partial updates and their validation
- Global template updates and bulk apply
- Isolation: no mutable container is shared between tables
"""

from __future__ import annotations

import pytest

from apiwizard.configuration import (
    apply_global_to_selected,
    builtin_method_configuration,
    default_configuration,
    default_global_configuration,
    render_base_path,
    update_configuration,
    update_global_default,
)
from apiwizard.errors import ConfigurationError
from apiwizard.models import GlobalConfiguration, MethodConfiguration, TableInfo, WorkflowState
from apiwizard.selection import select_all, toggle


# ===========================================================================
# Defaults
# ===========================================================================


class TestDefaults:
    """Template-derived configuration for a single table."""

    def test_base_path_from_pattern(self, base_state: WorkflowState) -> None:
        table = base_state.available_tables["users"]
        config = default_configuration(table, base_state.global_configuration, "svc1")
        assert config.base_path == "/svc1/users"
        assert config.table_name == "users"

    def test_base_path_without_service(self) -> None:
        assert render_base_path("/{service}/{table}", None, "users") == "/users"

    def test_operation_ids_use_table_name(self, base_state: WorkflowState) -> None:
        table = base_state.available_tables["orders"]
        config = default_configuration(table, base_state.global_configuration, "svc1")
        assert config.methods["GET"].operation_id == "getOrders"
        assert config.methods["POST"].operation_id == "createOrders"
        assert config.methods["DELETE"].operation_id == "deleteOrders"
        assert config.methods["POST"].request_schema == {"$ref": "#/components/schemas/OrdersCreate"}

    def test_delete_disabled_by_default(self, base_state: WorkflowState) -> None:
        table = base_state.available_tables["users"]
        config = default_configuration(table, base_state.global_configuration)
        assert config.enabled_methods == ["GET", "POST", "PUT", "PATCH"]

    def test_empty_template_gets_builtin_methods(self) -> None:
        config = default_configuration(TableInfo(name="user_roles"), GlobalConfiguration())
        assert set(config.methods) == {"GET", "POST", "PUT", "PATCH", "DELETE"}
        assert config.methods["GET"].operation_id == "getUserRoles"

    def test_get_has_standard_query_parameters(self) -> None:
        get = builtin_method_configuration("GET")
        names = [p.name for p in get.parameters]
        assert names == ["limit", "offset", "filter", "order", "fields", "include_count"]
        limit = get.parameters[0]
        assert (limit.default, limit.minimum, limit.maximum) == (25, 1, 1000)

    def test_unknown_verb_rejected(self) -> None:
        with pytest.raises(ValueError):
            builtin_method_configuration("TRACE")

    def test_template_untouched_by_derivation(self, base_state: WorkflowState) -> None:
        template = base_state.global_configuration
        before = template.model_dump()
        default_configuration(base_state.available_tables["users"], template, "svc1")
        assert template.model_dump() == before
        assert template.methods["GET"].operation_id == "get{TableName}"


# ===========================================================================
# Partial updates
# ===========================================================================


class TestUpdateConfiguration:
    """Recursive merge into one selected table's configuration."""

    def test_nested_merge_keeps_siblings(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        state = update_configuration(
            state, "users", {"security": {"rate_limit": {"requests_per_minute": 5}}}
        )
        security = state.endpoint_configurations["users"].security
        assert security.rate_limit.requests_per_minute == 5
        assert security.rate_limit.requests_per_hour == 1000
        assert security.require_auth is True

    def test_lists_replace(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        state = update_configuration(state, "users", {"enabled_methods": ["GET"]})
        assert state.endpoint_configurations["users"].enabled_methods == ["GET"]

    def test_method_flags_toggle_relative(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        state = update_configuration(
            state, "users", {"enabled_methods": {"DELETE": True, "PATCH": False}}
        )
        assert state.endpoint_configurations["users"].enabled_methods == ["GET", "POST", "PUT", "DELETE"]

    def test_method_keys_case_insensitive(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        state = update_configuration(state, "users", {"methods": {"get": {"tags": ["public"]}}})
        get = state.endpoint_configurations["users"].methods["GET"]
        assert get.tags == ["public"]
        assert get.operation_id == "getUsers"

    def test_accepts_model_partial(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        # only explicitly set fields take part in the merge
        partial = GlobalConfiguration.model_construct(max_page_size=10)
        state = update_configuration(state, "users", partial)
        assert state.endpoint_configurations["users"].max_page_size == 10

    def test_unselected_table_is_noop(self, base_state: WorkflowState) -> None:
        assert update_configuration(base_state, "users", {"enabled": False}) is base_state

    def test_invalid_value_raises(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        with pytest.raises(ConfigurationError):
            update_configuration(state, "users", {"max_page_size": 0})
        with pytest.raises(ConfigurationError):
            update_configuration(state, "users", {"enabled_methods": ["FETCH"]})

    def test_other_tables_unchanged(self, base_state: WorkflowState) -> None:
        state = select_all(base_state)
        before = state.endpoint_configurations["orders"]
        state = update_configuration(state, "users", {"enabled": False})
        assert state.endpoint_configurations["orders"] is before


# ===========================================================================
# Global template
# ===========================================================================


class TestGlobalTemplate:
    """Template updates and bulk application."""

    def test_update_global_leaves_tables_alone(self, base_state: WorkflowState) -> None:
        state = toggle(base_state, "users")
        state = update_global_default(state, {"enabled_methods": ["GET"]})
        assert state.global_configuration.enabled_methods == ["GET"]
        assert state.endpoint_configurations["users"].enabled_methods == ["GET", "POST", "PUT", "PATCH"]

    def test_new_selection_uses_updated_template(self, base_state: WorkflowState) -> None:
        state = update_global_default(base_state, {"base_path_pattern": "/api/{table}"})
        state = toggle(state, "orders")
        assert state.endpoint_configurations["orders"].base_path == "/api/orders"

    def test_invalid_global_raises(self, base_state: WorkflowState) -> None:
        with pytest.raises(ConfigurationError):
            update_global_default(base_state, {"max_page_size": -1})

    def test_apply_global_overwrites(self, base_state: WorkflowState) -> None:
        state = select_all(base_state)
        state = update_configuration(state, "users", {"enabled_methods": ["GET"]})
        state = update_global_default(state, {"security": {"require_auth": False}})
        state = apply_global_to_selected(state)
        users = state.endpoint_configurations["users"]
        assert users.enabled_methods == ["GET", "POST", "PUT", "PATCH"]
        assert all(not c.security.require_auth for c in state.endpoint_configurations.values())

    def test_apply_global_isolation(self, base_state: WorkflowState) -> None:
        state = apply_global_to_selected(select_all(base_state))
        users = state.endpoint_configurations["users"]
        orders = state.endpoint_configurations["orders"]

        assert users.methods is not orders.methods
        assert users.security is not orders.security
        assert users.security.required_roles is not orders.security.required_roles

        # mutate one table's containers in place; nothing else may move
        users.methods["GET"].tags.append("mutated")
        users.methods["POST"] = MethodConfiguration(description="replaced")
        users.security.required_roles.append("admin")

        assert "mutated" not in orders.methods["GET"].tags
        assert orders.methods["POST"].operation_id == "createOrders"
        assert orders.security.required_roles == []
        template = state.global_configuration
        assert "mutated" not in template.methods["GET"].tags
        assert template.security.required_roles == []

    def test_default_global_has_every_verb(self) -> None:
        template = default_global_configuration()
        assert list(template.methods) == ["GET", "POST", "PUT", "PATCH", "DELETE"]
