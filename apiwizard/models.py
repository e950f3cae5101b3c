# File: apiwizard/models.py
"""
NexaFlow APIWizard - Core Data Models
======================================
Pydantic V2 models for everything the generation workflow touches:
discovered schema (tables, fields, relationships), endpoint configuration,
preview / generation records and the immutable ``WorkflowState`` snapshot.

These models are the single source of truth for the whole pipeline:
Schema Discovery → Selection → Configuration → Preview → Generation.

Entity models are never mutated in place.  Every change produces a new
instance (``model_copy``) so that a previously handed-out snapshot stays
exactly as it was.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.models")

# ---------------------------------------------------------------------------
# Enums: fixed sets used across the entire project
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Normalized semantic type of a discovered column."""

    STRING = "string"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    TIME = "time"
    TEXT = "text"
    JSON = "json"
    BINARY = "binary"
    UUID = "uuid"


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE / ON UPDATE behaviour."""

    NO_ACTION = "no-action"
    RESTRICT = "restrict"
    CASCADE = "cascade"
    SET_NULL = "set-null"
    SET_DEFAULT = "set-default"


class HTTPMethod(str, Enum):
    """HTTP verbs a generated endpoint may expose."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ParameterLocation(str, Enum):
    """Where a generated endpoint parameter is carried."""

    QUERY = "query"
    PATH = "path"
    BODY = "body"
    HEADER = "header"


class WizardStep(str, Enum):
    """Steps of the generation workflow, in order."""

    TABLE_SELECTION = "table-selection"
    ENDPOINT_CONFIGURATION = "endpoint-configuration"
    SECURITY_CONFIGURATION = "security-configuration"
    PREVIEW_AND_GENERATE = "preview-and-generate"


#: Display / canonical order of HTTP verbs.
METHOD_ORDER: List[str] = [m.value for m in HTTPMethod]

#: Sub-steps reported while a generation run is executing.
GENERATION_SUB_STEPS: List[str] = [
    "Validating configuration",
    "Validating specification",
    "Generating API endpoints",
    "Finalizing documentation",
]


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

# Discovered schema is immutable once fetched.
_ENTITY_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)

# Server responses: camelCase on the wire, unknown keys tolerated.
_WIRE_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    alias_generator=to_camel,
    use_enum_values=True,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Discovered schema
# ---------------------------------------------------------------------------


class FieldInfo(BaseModel):
    """A single column of a discovered table."""

    model_config = _ENTITY_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    source_type: str = Field(
        default="", description="Raw database type as reported by the service."
    )
    type: FieldType = Field(
        default=FieldType.STRING, description="Normalized semantic type."
    )
    nullable: bool = Field(default=True, description="Whether NULL is allowed.")
    primary_key: bool = Field(default=False, description="Part of the primary key?")
    foreign_key: bool = Field(default=False, description="References another table?")
    unique: bool = Field(default=False, description="Has a UNIQUE constraint?")
    auto_increment: bool = Field(default=False, description="SERIAL / IDENTITY column?")
    length: Optional[int] = Field(default=None, ge=0, description="Max length.")
    precision: Optional[int] = Field(default=None, ge=0, description="Numeric precision.")
    scale: Optional[int] = Field(default=None, ge=0, description="Numeric scale.")
    ref_table: Optional[str] = Field(default=None, description="Referenced table.")
    ref_field: Optional[str] = Field(default=None, description="Referenced column.")

    @computed_field  # type: ignore[misc]
    @property
    def is_numeric(self) -> bool:
        return self.type in {
            FieldType.INTEGER,
            FieldType.BIGINT,
            FieldType.DECIMAL,
            FieldType.FLOAT,
            FieldType.DOUBLE,
        }

    def __repr__(self) -> str:
        pk_flag: str = " PK" if self.primary_key else ""
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Field {self.name} {self.type}{pk_flag}{null_flag}>"


class RelationshipInfo(BaseModel):
    """A foreign-key relationship from a local field to another table."""

    model_config = _ENTITY_CONFIG

    name: str = Field(..., min_length=1, description="Relationship name.")
    field: str = Field(..., min_length=1, description="Local field name.")
    ref_table: str = Field(..., min_length=1, description="Referenced table.")
    ref_field: str = Field(..., min_length=1, description="Referenced field.")
    on_delete: ReferentialAction = Field(default=ReferentialAction.NO_ACTION)
    on_update: ReferentialAction = Field(default=ReferentialAction.NO_ACTION)

    def __repr__(self) -> str:
        return f"<Relationship {self.name} {self.field} → {self.ref_table}.{self.ref_field}>"


class TableInfo(BaseModel):
    """
    A discovered database table.

    Whether a table is *selected* is never stored here; it is derived from
    the selection map in ``WorkflowState``.
    """

    model_config = _ENTITY_CONFIG

    id: str = Field(default="", description="Stable identifier (defaults to name).")
    name: str = Field(..., min_length=1, description="Table name.")
    label: Optional[str] = Field(default=None, description="Human-readable label.")
    description: Optional[str] = Field(default=None, description="Table comment.")
    fields: List[FieldInfo] = Field(default_factory=list)
    relationships: List[RelationshipInfo] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and data.get("name"):
            data = {**data, "id": data["name"]}
        return data

    @computed_field  # type: ignore[misc]
    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @computed_field  # type: ignore[misc]
    @property
    def primary_keys(self) -> List[str]:
        return [f.name for f in self.fields if f.primary_key]

    def get_field(self, name: str) -> Optional[FieldInfo]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return (
            f"<Table {self.name} "
            f"({len(self.fields)} fields, {len(self.relationships)} rels)>"
        )


# ---------------------------------------------------------------------------
# Endpoint configuration
# ---------------------------------------------------------------------------


class ParameterConfiguration(BaseModel):
    """One parameter of a generated endpoint operation."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    location: ParameterLocation = Field(default=ParameterLocation.QUERY)
    data_type: FieldType = Field(default=FieldType.STRING)
    required: bool = False
    description: str = ""
    default: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class MethodConfiguration(BaseModel):
    """Per-verb shaping of a generated endpoint."""

    model_config = _SHARED_CONFIG

    description: str = ""
    operation_id: str = ""
    tags: List[str] = Field(default_factory=list)
    parameters: List[ParameterConfiguration] = Field(default_factory=list)
    request_schema: Optional[Dict[str, Any]] = None
    response_schema: Optional[Dict[str, Any]] = None


class RateLimit(BaseModel):
    """Request quotas applied to a generated endpoint."""

    model_config = _SHARED_CONFIG

    requests_per_minute: int = Field(default=60, ge=0)
    requests_per_hour: int = Field(default=1000, ge=0)
    requests_per_day: int = Field(default=10000, ge=0)
    burst_allowance: int = Field(default=10, ge=0)


class SecurityConfiguration(BaseModel):
    """Access control for a generated endpoint."""

    model_config = _SHARED_CONFIG

    require_auth: bool = True
    required_roles: List[str] = Field(default_factory=list)
    rate_limit: RateLimit = Field(default_factory=RateLimit)


class EndpointSettings(BaseModel):
    """Settings shared by the global template and per-table configurations."""

    model_config = _SHARED_CONFIG

    enabled: bool = Field(default=True, description="Generate this endpoint at all.")
    enabled_methods: List[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "PATCH"],
        description="Enabled HTTP verbs, kept in canonical order.",
    )
    methods: Dict[str, MethodConfiguration] = Field(
        default_factory=dict, description="Per-verb configuration keyed by verb."
    )
    security: SecurityConfiguration = Field(default_factory=SecurityConfiguration)
    pagination_enabled: bool = True
    filtering_enabled: bool = True
    sorting_enabled: bool = True
    max_page_size: int = Field(default=100, ge=1, le=10000)
    custom_fields: List[str] = Field(default_factory=list)

    @field_validator("enabled_methods", mode="before")
    @classmethod
    def _normalize_methods(cls, v: Any) -> List[str]:
        if isinstance(v, dict):
            # {"GET": true, "DELETE": false} form
            v = [k for k, on in v.items() if on]
        verbs: List[str] = []
        for item in v or []:
            verb: str = HTTPMethod(str(getattr(item, "value", item)).upper()).value
            if verb not in verbs:
                verbs.append(verb)
        return sorted(verbs, key=METHOD_ORDER.index)

    @field_validator("methods", mode="before")
    @classmethod
    def _normalize_method_keys(cls, v: Any) -> Dict[str, Any]:
        if not v:
            return {}
        return {
            HTTPMethod(str(getattr(k, "value", k)).upper()).value: cfg
            for k, cfg in dict(v).items()
        }


class GlobalConfiguration(EndpointSettings):
    """Template that new per-table configurations are derived from."""

    base_path_pattern: str = Field(
        default="/{service}/{table}",
        description="Base path template; {service} and {table} are substituted.",
    )


class EndpointConfiguration(EndpointSettings):
    """Configuration of the endpoint generated for one selected table."""

    table_name: str = Field(..., min_length=1)
    base_path: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Preview & generation records
# ---------------------------------------------------------------------------


class PreviewSpecification(BaseModel):
    """Latest OpenAPI preview and its local structural validation."""

    model_config = _SHARED_CONFIG

    specification: Optional[Dict[str, Any]] = None
    is_valid: bool = False
    validation_errors: List[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    error: Optional[str] = Field(
        default=None, description="Last request failure, kept until a new attempt."
    )
    stale: bool = Field(
        default=False,
        description="Selection or configuration changed since the last fetch.",
    )


class GenerationStatistics(BaseModel):
    """Counters reported by a generation run."""

    model_config = _WIRE_CONFIG

    tables_processed: int = 0
    endpoints_generated: int = 0
    schemas_created: int = 0
    generation_duration: float = Field(default=0.0, description="Milliseconds.")
    specification_size: int = Field(default=0, description="Bytes.")


class GenerationResult(BaseModel):
    """Body returned by the generation endpoint."""

    model_config = _WIRE_CONFIG

    success: bool = False
    endpoint_urls: List[str] = Field(default_factory=list)
    statistics: Optional[GenerationStatistics] = None
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class GenerationProgress(BaseModel):
    """Progress of the current (or last) generation run."""

    model_config = _SHARED_CONFIG

    current_step: int = Field(default=0, ge=0, description="Current sub-step index.")
    completed_steps: List[int] = Field(default_factory=list)
    is_generating: bool = False
    error: Optional[str] = None
    generated_endpoints: List[str] = Field(default_factory=list)
    statistics: Optional[GenerationStatistics] = None
    warnings: List[str] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def is_terminal(self) -> bool:
        return not self.is_generating and (
            self.error is not None or bool(self.generated_endpoints)
        )


# ---------------------------------------------------------------------------
# Workflow state: the single immutable snapshot
# ---------------------------------------------------------------------------


class WorkflowState(BaseModel):
    """
    Complete state of one generation workflow session.

    Instances are frozen; engines derive a new snapshot with
    ``model_copy(update=...)`` and fresh containers, never by mutating the
    dicts or sets of an existing one.

    Invariants:
        - ``selected_tables`` keys ⊆ ``available_tables`` keys.
        - ``endpoint_configurations`` keys == ``selected_tables`` keys.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    current_step: WizardStep = WizardStep.TABLE_SELECTION
    completed_steps: FrozenSet[WizardStep] = frozenset()
    navigation_locked: bool = False
    service_id: Optional[str] = None
    available_tables: Dict[str, TableInfo] = Field(default_factory=dict)
    selected_tables: Dict[str, TableInfo] = Field(default_factory=dict)
    search_query: str = ""
    endpoint_configurations: Dict[str, EndpointConfiguration] = Field(default_factory=dict)
    global_configuration: GlobalConfiguration = Field(default_factory=GlobalConfiguration)
    generation_progress: GenerationProgress = Field(default_factory=GenerationProgress)
    preview: PreviewSpecification = Field(default_factory=PreviewSpecification)
    discovery_error: Optional[str] = None
    is_discovering: bool = False
    is_previewing: bool = False

    def evolve(self, **changes: Any) -> "WorkflowState":
        """Return a new snapshot with ``changes`` applied."""
        return self.model_copy(update=changes)

    def __repr__(self) -> str:
        return (
            f"<WorkflowState step={self.current_step.value} "
            f"{len(self.selected_tables)}/{len(self.available_tables)} selected"
            f"{' LOCKED' if self.navigation_locked else ''}>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldType",
    "ReferentialAction",
    "HTTPMethod",
    "ParameterLocation",
    "WizardStep",
    "METHOD_ORDER",
    "GENERATION_SUB_STEPS",
    "FieldInfo",
    "RelationshipInfo",
    "TableInfo",
    "ParameterConfiguration",
    "MethodConfiguration",
    "RateLimit",
    "SecurityConfiguration",
    "EndpointSettings",
    "GlobalConfiguration",
    "EndpointConfiguration",
    "PreviewSpecification",
    "GenerationStatistics",
    "GenerationResult",
    "GenerationProgress",
    "WorkflowState",
]

logger.debug("apiwizard.models loaded, %d public symbols.", len(__all__))
