# File: apiwizard/configuration.py
"""
NexaFlow APIWizard - Configuration Engine
==========================================
Per-table endpoint configuration and the global default template.

Every function here is pure: it takes a ``WorkflowState`` and returns a new
one.  Configurations handed to different tables never share mutable
containers; each is built from a deep copy of the template.

Invariant maintained together with ``apiwizard.selection``:
    keys(endpoint_configurations) == keys(selected_tables)
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from apiwizard.errors import ConfigurationError
from apiwizard.models import (
    METHOD_ORDER,
    EndpointConfiguration,
    FieldType,
    GlobalConfiguration,
    MethodConfiguration,
    ParameterConfiguration,
    ParameterLocation,
    TableInfo,
    WorkflowState,
)
from apiwizard.utils import deep_merge, to_pascal_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.configuration")

Partial = Union[Mapping[str, Any], BaseModel]

# ---------------------------------------------------------------------------
# Built-in per-verb defaults
# ---------------------------------------------------------------------------

_TABLE_PLACEHOLDER: str = "{TableName}"


def _query(name: str, data_type: FieldType, description: str, **extra: Any) -> ParameterConfiguration:
    return ParameterConfiguration(
        name=name,
        location=ParameterLocation.QUERY,
        data_type=data_type,
        description=description,
        **extra,
    )


def _path_id(description: str) -> ParameterConfiguration:
    return ParameterConfiguration(
        name="id",
        location=ParameterLocation.PATH,
        data_type=FieldType.STRING,
        required=True,
        description=description,
    )


def _body(description: str) -> ParameterConfiguration:
    return ParameterConfiguration(
        name="body",
        location=ParameterLocation.BODY,
        data_type=FieldType.JSON,
        required=True,
        description=description,
    )


def _record_list_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "resource": {
                "type": "array",
                "items": {"$ref": "#/components/schemas/{TableName}"},
            }
        },
    }


def builtin_method_configuration(verb: str) -> MethodConfiguration:
    """
    Default configuration for one verb, with ``{TableName}`` placeholders.

    Raises:
        ValueError: For a verb outside GET/POST/PUT/PATCH/DELETE.
    """
    fields_param = _query("fields", FieldType.STRING, "Comma-separated list of fields to return")

    if verb == "GET":
        return MethodConfiguration(
            description="Retrieve records from the table",
            operation_id="get{TableName}",
            tags=["read"],
            parameters=[
                _query("limit", FieldType.INTEGER, "Maximum number of records to return",
                       default=25, minimum=1, maximum=1000),
                _query("offset", FieldType.INTEGER, "Number of records to skip for pagination",
                       default=0, minimum=0),
                _query("filter", FieldType.STRING, "SQL WHERE clause filter conditions"),
                _query("order", FieldType.STRING, "SQL ORDER BY clause for sorting"),
                fields_param,
                _query("include_count", FieldType.BOOLEAN, "Include total record count in response",
                       default=False),
            ],
            response_schema=_record_list_schema(),
        )
    if verb == "POST":
        return MethodConfiguration(
            description="Create new records in the table",
            operation_id="create{TableName}",
            tags=["create"],
            parameters=[_body("Record data to create"), fields_param],
            request_schema={"$ref": "#/components/schemas/{TableName}Create"},
            response_schema=_record_list_schema(),
        )
    if verb == "PUT":
        return MethodConfiguration(
            description="Update or replace records in the table",
            operation_id="update{TableName}",
            tags=["update"],
            parameters=[
                _path_id("Record identifier for update"),
                _body("Complete record data for replacement"),
                fields_param,
            ],
            request_schema={"$ref": "#/components/schemas/{TableName}Update"},
            response_schema=_record_list_schema(),
        )
    if verb == "PATCH":
        return MethodConfiguration(
            description="Partially update records in the table",
            operation_id="patch{TableName}",
            tags=["update"],
            parameters=[
                _path_id("Record identifier for partial update"),
                _body("Partial record data for update"),
                fields_param,
            ],
            request_schema={"$ref": "#/components/schemas/{TableName}Patch"},
            response_schema=_record_list_schema(),
        )
    if verb == "DELETE":
        return MethodConfiguration(
            description="Delete records from the table",
            operation_id="delete{TableName}",
            tags=["delete"],
            parameters=[
                _path_id("Record identifier for deletion"),
                _query("force", FieldType.BOOLEAN,
                       "Force deletion ignoring referential constraints", default=False),
            ],
            response_schema=_record_list_schema(),
        )
    raise ValueError(f"Unsupported HTTP method: {verb!r}")


def default_global_configuration() -> GlobalConfiguration:
    """Template with every verb configured; DELETE is off by default."""
    return GlobalConfiguration(
        methods={verb: builtin_method_configuration(verb) for verb in METHOD_ORDER},
    )


# ---------------------------------------------------------------------------
# Derivation helpers
# ---------------------------------------------------------------------------


def _render(value: Any, replacements: Mapping[str, str]) -> Any:
    """Substitute placeholders in every string of a nested structure."""
    if isinstance(value, str):
        for placeholder, text in replacements.items():
            value = value.replace(placeholder, text)
        return value
    if isinstance(value, dict):
        return {k: _render(v, replacements) for k, v in value.items()}
    if isinstance(value, list):
        return [_render(v, replacements) for v in value]
    return value


def render_base_path(pattern: str, service_id: Optional[str], table_name: str) -> str:
    path: str = pattern.replace("{service}", service_id or "").replace("{table}", table_name)
    return "/" + "/".join(part for part in path.split("/") if part)


def default_configuration(
    table: TableInfo,
    global_configuration: GlobalConfiguration,
    service_id: Optional[str] = None,
) -> EndpointConfiguration:
    """
    Derive a fresh configuration for ``table`` from the global template.

    The template is dumped and deep-copied, so the result shares no list or
    dict with the template or with any other table's configuration.
    """
    data: Dict[str, Any] = copy.deepcopy(
        global_configuration.model_dump(exclude={"base_path_pattern"})
    )
    methods: Dict[str, Any] = data["methods"]
    for verb in METHOD_ORDER:
        if verb not in methods:
            methods[verb] = builtin_method_configuration(verb).model_dump()

    data["methods"] = _render(methods, {_TABLE_PLACEHOLDER: to_pascal_case(table.name)})
    data["table_name"] = table.name
    data["base_path"] = render_base_path(
        global_configuration.base_path_pattern, service_id, table.name
    )
    return EndpointConfiguration.model_validate(data)


def _normalize_partial(partial: Partial, current_methods: List[str]) -> Dict[str, Any]:
    if isinstance(partial, BaseModel):
        data: Dict[str, Any] = partial.model_dump(exclude_unset=True)
    else:
        data = dict(partial)

    if isinstance(data.get("methods"), Mapping):
        data["methods"] = {str(k).upper(): v for k, v in data["methods"].items()}

    # {"DELETE": True} toggles verbs relative to the current set
    toggles: Any = data.get("enabled_methods")
    if isinstance(toggles, Mapping):
        verbs: List[str] = list(current_methods)
        for verb, on in toggles.items():
            verb = str(verb).upper()
            if on and verb not in verbs:
                verbs.append(verb)
            elif not on and verb in verbs:
                verbs.remove(verb)
        data["enabled_methods"] = verbs
    return data


# ---------------------------------------------------------------------------
# State operations
# ---------------------------------------------------------------------------


def update_configuration(state: WorkflowState, table_id: str, partial: Partial) -> WorkflowState:
    """
    Merge ``partial`` into the configuration of a selected table.

    Nested mappings (``security``, ``methods``) merge recursively; lists
    replace.  Calling this for a table that is not selected is a no-op.

    Raises:
        ConfigurationError: If the merged configuration is invalid.
    """
    table: Optional[TableInfo] = state.selected_tables.get(table_id)
    if table is None:
        logger.warning(
            "update_configuration ignored: table '%s' is not selected.", table_id
        )
        return state

    current: EndpointConfiguration = state.endpoint_configurations.get(
        table_id
    ) or default_configuration(table, state.global_configuration, state.service_id)

    merged: Dict[str, Any] = deep_merge(
        current.model_dump(), _normalize_partial(partial, current.enabled_methods)
    )
    try:
        updated: EndpointConfiguration = EndpointConfiguration.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration for table '{table_id}': {exc}"
        ) from exc

    configs: Dict[str, EndpointConfiguration] = dict(state.endpoint_configurations)
    configs[table_id] = updated
    logger.debug("Updated configuration for '%s'.", table_id)
    return state.evolve(endpoint_configurations=configs)


def update_global_default(state: WorkflowState, partial: Partial) -> WorkflowState:
    """
    Merge ``partial`` into the global template.

    Existing per-table configurations are left as they are.

    Raises:
        ConfigurationError: If the merged template is invalid.
    """
    current: GlobalConfiguration = state.global_configuration
    merged: Dict[str, Any] = deep_merge(
        current.model_dump(), _normalize_partial(partial, current.enabled_methods)
    )
    try:
        updated: GlobalConfiguration = GlobalConfiguration.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid global configuration: {exc}") from exc
    return state.evolve(global_configuration=updated)


def apply_global_to_selected(state: WorkflowState) -> WorkflowState:
    """Overwrite every selected table's configuration with a fresh template copy."""
    configs: Dict[str, EndpointConfiguration] = {
        table_id: default_configuration(table, state.global_configuration, state.service_id)
        for table_id, table in state.selected_tables.items()
    }
    logger.debug("Applied global configuration to %d table(s).", len(configs))
    return state.evolve(endpoint_configurations=configs)
