"""
tests/test_schema.py
Unit tests for apiwizard.schema and the entity models it produces.

Tests cover:
- Raw database type normalization
- Referential action normalization
- Accepted schema payload shapes
- Field / relationship parsing (snake_case and camelCase keys)
- Model defaults and wire aliases
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest
from pydantic import ValidationError

from apiwizard.models import (
    EndpointSettings,
    FieldType,
    GenerationProgress,
    GenerationResult,
    ReferentialAction,
    TableInfo,
    WorkflowState,
)
from apiwizard.schema import (
    normalize_field_type,
    normalize_referential_action,
    parse_field,
    parse_relationship,
    parse_schema_response,
)


# ===========================================================================
# Type normalization
# ===========================================================================


class TestNormalizeFieldType:
    """Raw db type strings map onto FieldType."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("varchar(255)", FieldType.STRING),
            ("VARCHAR(64)", FieldType.STRING),
            ("int(11)", FieldType.INTEGER),
            ("int unsigned", FieldType.INTEGER),
            ("bigint", FieldType.BIGINT),
            ("decimal(10,2)", FieldType.DECIMAL),
            ("double precision", FieldType.DOUBLE),
            ("timestamp with time zone", FieldType.TIMESTAMP),
            ("datetime2", FieldType.DATETIME),
            ("jsonb", FieldType.JSON),
            ("bytea", FieldType.BINARY),
            ("uniqueidentifier", FieldType.UUID),
            ("longtext", FieldType.TEXT),
        ],
    )
    def test_known_types(self, raw: str, expected: FieldType) -> None:
        assert normalize_field_type(raw)[0] == expected

    def test_tinyint_one_is_boolean(self) -> None:
        assert normalize_field_type("tinyint(1)") == (FieldType.BOOLEAN, None, None)

    def test_tinyint_other_width_is_integer(self) -> None:
        assert normalize_field_type("tinyint(4)")[0] == FieldType.INTEGER

    def test_length_argument(self) -> None:
        assert normalize_field_type("varchar(255)") == (FieldType.STRING, 255, None)

    def test_precision_and_scale(self) -> None:
        assert normalize_field_type("decimal(10, 2)") == (FieldType.DECIMAL, 10, 2)

    def test_unknown_type_falls_back_to_string(self) -> None:
        assert normalize_field_type("geometry")[0] == FieldType.STRING

    def test_empty_type_is_string(self) -> None:
        assert normalize_field_type("") == (FieldType.STRING, None, None)
        assert normalize_field_type(None) == (FieldType.STRING, None, None)


class TestNormalizeReferentialAction:
    """SQL spellings of ON DELETE / ON UPDATE actions."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("CASCADE", ReferentialAction.CASCADE),
            ("SET NULL", ReferentialAction.SET_NULL),
            ("set_default", ReferentialAction.SET_DEFAULT),
            ("no action", ReferentialAction.NO_ACTION),
            ("Restrict", ReferentialAction.RESTRICT),
        ],
    )
    def test_spellings(self, raw: str, expected: ReferentialAction) -> None:
        assert normalize_referential_action(raw) == expected

    def test_missing_or_unknown(self) -> None:
        assert normalize_referential_action(None) == ReferentialAction.NO_ACTION
        assert normalize_referential_action("explode") == ReferentialAction.NO_ACTION


# ===========================================================================
# Payload parsing
# ===========================================================================


class TestParseSchemaResponse:
    """Accepted top-level shapes and table parsing."""

    def test_tables_shape(self, raw_schema_payload: Dict[str, Any]) -> None:
        tables = parse_schema_response(raw_schema_payload)
        assert [t.name for t in tables] == ["users", "orders", "products", "invoices"]

    def test_resource_shape(self, raw_schema_payload: Dict[str, Any]) -> None:
        tables = parse_schema_response({"resource": raw_schema_payload["tables"]})
        assert len(tables) == 4

    def test_bare_list_shape(self, raw_schema_payload: Dict[str, Any]) -> None:
        tables = parse_schema_response(raw_schema_payload["tables"])
        assert len(tables) == 4

    def test_invalid_shape_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_schema_response({"rows": []})

    def test_id_defaults_to_name(self, tables: List[TableInfo]) -> None:
        assert all(t.id == t.name for t in tables)

    def test_primary_keys_and_flags(self, tables: List[TableInfo]) -> None:
        users = tables[0]
        assert users.primary_keys == ["id"]
        email = users.get_field("email")
        assert email is not None
        assert email.unique and not email.nullable and email.length == 255
        assert users.get_field("is_active").type == FieldType.BOOLEAN

    def test_explicit_relationship_not_duplicated(self, tables: List[TableInfo]) -> None:
        orders = tables[1]
        assert len(orders.relationships) == 1
        rel = orders.relationships[0]
        assert rel.name == "orders_customer_id_fk"
        assert rel.on_delete == ReferentialAction.CASCADE.value

    def test_relationship_derived_from_foreign_key(self) -> None:
        tables = parse_schema_response(
            {
                "tables": [
                    {
                        "name": "comments",
                        "fields": [
                            {"name": "post_id", "type": "integer",
                             "foreignKey": {"table": "posts", "field": "id"}},
                        ],
                    }
                ]
            }
        )
        rel = tables[0].relationships[0]
        assert rel.name == "comments_post_id_fk"
        assert (rel.ref_table, rel.ref_field) == ("posts", "id")
        assert tables[0].fields[0].foreign_key is True


class TestParseField:
    """camelCase keys and the abstract ``type`` hint."""

    def test_camel_case_keys(self) -> None:
        field = parse_field(
            {"name": "id", "dbType": "bigint", "primaryKey": True,
             "nullable": False, "autoIncrement": True}
        )
        assert field.primary_key and field.auto_increment and not field.nullable
        assert field.type == FieldType.BIGINT

    def test_abstract_type_wins(self) -> None:
        field = parse_field({"name": "flag", "db_type": "bit(1)", "type": "boolean"})
        assert field.type == FieldType.BOOLEAN
        assert field.source_type == "bit(1)"

    def test_decimal_precision_from_type(self) -> None:
        field = parse_field({"name": "total", "db_type": "numeric(12,4)"})
        assert (field.precision, field.scale, field.length) == (12, 4, None)
        assert field.is_numeric

    def test_incomplete_relationship_skipped(self) -> None:
        assert parse_relationship({"field": "x"}, "t") is None


# ===========================================================================
# Models
# ===========================================================================


class TestModels:
    """Model defaults, normalization and immutability."""

    def test_enabled_methods_normalized(self) -> None:
        settings = EndpointSettings(enabled_methods=["delete", "get", "GET"])
        assert settings.enabled_methods == ["GET", "DELETE"]

    def test_enabled_methods_from_flags(self) -> None:
        settings = EndpointSettings(enabled_methods={"POST": True, "GET": True, "PUT": False})
        assert settings.enabled_methods == ["GET", "POST"]

    def test_default_methods_exclude_delete(self) -> None:
        assert "DELETE" not in EndpointSettings().enabled_methods

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EndpointSettings(enabled_methods=["FETCH"])

    def test_generation_result_camel_case(self) -> None:
        result = GenerationResult.model_validate(
            {
                "success": True,
                "endpointUrls": ["/a"],
                "statistics": {"tablesProcessed": 2, "endpointsGenerated": 10},
                "unknownKey": 1,
            }
        )
        assert result.endpoint_urls == ["/a"]
        assert result.statistics.tables_processed == 2

    def test_progress_terminal(self) -> None:
        assert not GenerationProgress().is_terminal
        assert not GenerationProgress(is_generating=True, error="x").is_terminal
        assert GenerationProgress(error="boom").is_terminal
        assert GenerationProgress(generated_endpoints=["/a"]).is_terminal

    def test_workflow_state_is_frozen(self) -> None:
        state = WorkflowState()
        with pytest.raises(ValidationError):
            state.search_query = "x"  # type: ignore[misc]

    def test_evolve_returns_new_snapshot(self) -> None:
        state = WorkflowState()
        evolved = state.evolve(search_query="user")
        assert evolved is not state
        assert state.search_query == ""
        assert evolved.search_query == "user"

    def test_table_is_frozen(self) -> None:
        table = TableInfo(name="t")
        with pytest.raises(ValidationError):
            table.name = "u"  # type: ignore[misc]
