# File: apiwizard/validators.py
"""
NexaFlow APIWizard - Step & Specification Validators
=====================================================
Pure-function checks run against a ``WorkflowState``.

Pydantic already guarantees the structure of each model.  This module
checks what only makes sense across entities: does every selected table
have a configuration, is at least one verb enabled, are the security
quotas within range, does the preview look like an OpenAPI document.

Nothing here raises.  Problems are collected in a ``ValidationResult``;
``validate_preview_specification`` returns plain strings because they are
stored directly on ``PreviewSpecification.validation_errors``.

Usage:
    from apiwizard.validators import validate_step
    result = validate_step(state, WizardStep.ENDPOINT_CONFIGURATION)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from apiwizard.models import (
    EndpointConfiguration,
    RateLimit,
    WizardStep,
    WorkflowState,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight problem descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances from one or more checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not any(e.is_error for e in self._items)

    @property
    def messages(self) -> List[str]:
        """Error messages only, in the order they were added."""
        return [e.message for e in self._items if e.is_error]

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "❌",
                "warning": "⚠️",
                "info": "ℹ️",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

MIN_TABLES: int = 1
MAX_TABLES: int = 50
MAX_BASE_PATH_LENGTH: int = 255
MAX_TAGS_PER_ENDPOINT: int = 10
MAX_ROLES_PER_ENDPOINT: int = 20
MAX_ROLE_NAME_LENGTH: int = 64

#: (minimum, maximum) per quota field.
RATE_LIMIT_RANGES: Dict[str, Tuple[int, int]] = {
    "requests_per_minute": (1, 1000),
    "requests_per_hour": (1, 100000),
    "requests_per_day": (1, 1000000),
    "burst_allowance": (0, 100),
}

_BASE_PATH_RE: re.Pattern[str] = re.compile(r"^/[a-zA-Z0-9_\-/{}]+$")
_OPENAPI_VERSION_RE: re.Pattern[str] = re.compile(r"^3\.\d+(\.\d+)?$")


# ---------------------------------------------------------------------------
# Preview specification
# ---------------------------------------------------------------------------


def validate_preview_specification(spec: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Structural check of a preview document.

    Only the three top-level keys are inspected; the rest of the document
    is opaque.  Returns human-readable messages, empty when valid.

    Examples:
        >>> validate_preview_specification({"openapi": "3.0.3", "info": {}, "paths": {}})
        ['No API paths defined in specification']
    """
    if not isinstance(spec, Mapping):
        return ["Specification is empty or not an object"]

    problems: List[str] = []

    version: Any = spec.get("openapi")
    if not version:
        problems.append("Missing OpenAPI version field")
    elif not _OPENAPI_VERSION_RE.match(str(version)):
        problems.append(f"Unsupported OpenAPI version '{version}' (expected 3.x)")

    info: Any = spec.get("info")
    if not isinstance(info, Mapping):
        problems.append("Missing API info object")

    paths: Any = spec.get("paths")
    if not isinstance(paths, Mapping) or not paths:
        problems.append("No API paths defined in specification")

    return problems


# ---------------------------------------------------------------------------
# Step validators
# ---------------------------------------------------------------------------


def validate_table_selection(
    state: WorkflowState, max_tables: int = MAX_TABLES
) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    count: int = len(state.selected_tables)

    if count < MIN_TABLES:
        result.add_error("NO_TABLES_SELECTED", "At least one table must be selected")
    elif count > max_tables:
        result.add_error(
            "TOO_MANY_TABLES",
            f"No more than {max_tables} tables can be selected (got {count})",
            {"selected": count},
        )

    for table_id in state.selected_tables:
        if table_id not in state.available_tables:
            result.add_error(
                "SELECTED_TABLE_UNAVAILABLE",
                f"Selected table '{table_id}' is not among the discovered tables",
                {"table": table_id},
            )
    return result


def _check_endpoint(table_name: str, config: EndpointConfiguration, result: ValidationResult) -> None:
    ctx: Dict[str, Any] = {"table": table_name}

    if not config.enabled_methods:
        result.add_error(
            "NO_METHODS_ENABLED",
            f"At least one HTTP method must be enabled for table: {table_name}",
            ctx,
        )
    elif "GET" not in config.enabled_methods:
        result.add_warning(
            "NO_READ_OPERATION",
            f"No read operation (GET) is enabled for table: {table_name}",
            ctx,
        )

    if not _BASE_PATH_RE.match(config.base_path) or len(config.base_path) > MAX_BASE_PATH_LENGTH:
        result.add_error(
            "INVALID_BASE_PATH",
            f"Base path '{config.base_path}' must start with / and contain only valid characters",
            ctx,
        )

    for verb, method in config.methods.items():
        if len(method.tags) > MAX_TAGS_PER_ENDPOINT:
            result.add_warning(
                "TOO_MANY_TAGS",
                f"{verb} on '{table_name}' has {len(method.tags)} tags "
                f"(max {MAX_TAGS_PER_ENDPOINT})",
                ctx,
            )

    if config.pagination_enabled and config.max_page_size > 1000:
        result.add_warning(
            "LARGE_PAGE_SIZE",
            f"max_page_size {config.max_page_size} for '{table_name}' may cause slow responses",
            ctx,
        )


def validate_endpoint_configurations(state: WorkflowState) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for table_id, table in state.selected_tables.items():
        config: Optional[EndpointConfiguration] = state.endpoint_configurations.get(table_id)
        if config is None:
            result.add_error(
                "CONFIGURATION_MISSING",
                f"Configuration missing for table: {table.name}",
                {"table": table.name},
            )
            continue
        if config.enabled:
            _check_endpoint(table.name, config, result)

    for table_id in state.endpoint_configurations:
        if table_id not in state.selected_tables:
            result.add_error(
                "ORPHAN_CONFIGURATION",
                f"Configuration exists for unselected table '{table_id}'",
                {"table": table_id},
            )
    return result


def _check_rate_limit(table_name: str, quota: RateLimit, result: ValidationResult) -> None:
    for field_name, (low, high) in RATE_LIMIT_RANGES.items():
        value: int = getattr(quota, field_name)
        if not low <= value <= high:
            result.add_error(
                "RATE_LIMIT_OUT_OF_RANGE",
                f"{field_name} for '{table_name}' must be between {low} and {high} (got {value})",
                {"table": table_name, "field": field_name},
            )

    if quota.requests_per_hour > quota.requests_per_day:
        result.add_warning(
            "RATE_LIMIT_INCONSISTENT",
            f"Per-hour quota for '{table_name}' exceeds its per-day quota",
            {"table": table_name},
        )


def validate_security_configurations(state: WorkflowState) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for table_id, config in state.endpoint_configurations.items():
        name: str = config.table_name
        security = config.security
        roles: List[str] = security.required_roles

        if len(roles) > MAX_ROLES_PER_ENDPOINT:
            result.add_error(
                "TOO_MANY_ROLES",
                f"'{name}' lists {len(roles)} roles (max {MAX_ROLES_PER_ENDPOINT})",
                {"table": name},
            )
        for role in roles:
            if not role.strip() or len(role) > MAX_ROLE_NAME_LENGTH:
                result.add_error(
                    "INVALID_ROLE_NAME",
                    f"Role name '{role}' on '{name}' is empty or too long",
                    {"table": name},
                )
        if roles and not security.require_auth:
            result.add_warning(
                "ROLES_WITHOUT_AUTH",
                f"'{name}' lists required roles but does not require authentication",
                {"table": name},
            )
        if not security.require_auth and "DELETE" in config.enabled_methods:
            result.add_warning(
                "UNAUTHENTICATED_DELETE",
                f"DELETE is enabled on '{name}' without authentication",
                {"table": name},
            )

        _check_rate_limit(name, security.rate_limit, result)
    return result


def validate_preview_step(state: WorkflowState) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if state.preview.specification is None:
        result.add_error(
            "PREVIEW_MISSING",
            "OpenAPI specification must be generated before proceeding",
        )
        return result
    for message in state.preview.validation_errors:
        result.add_error("PREVIEW_INVALID", message)
    if state.preview.stale:
        result.add_warning(
            "PREVIEW_STALE",
            "Configuration changed since the preview was generated",
        )
    return result


_STEP_VALIDATORS: Dict[WizardStep, Callable[[WorkflowState], ValidationResult]] = {
    WizardStep.TABLE_SELECTION: validate_table_selection,
    WizardStep.ENDPOINT_CONFIGURATION: validate_endpoint_configurations,
    WizardStep.SECURITY_CONFIGURATION: validate_security_configurations,
    WizardStep.PREVIEW_AND_GENERATE: validate_preview_step,
}


def validate_step(
    state: WorkflowState, step: WizardStep, max_tables: int = MAX_TABLES
) -> ValidationResult:
    """Run the validator belonging to ``step``."""
    if WizardStep(step) == WizardStep.TABLE_SELECTION:
        result: ValidationResult = validate_table_selection(state, max_tables)
    else:
        result = _STEP_VALIDATORS[WizardStep(step)](state)
    logger.debug("Step %s: %s", WizardStep(step).value, result.summary())
    return result


def validate_all(state: WorkflowState, max_tables: int = MAX_TABLES) -> ValidationResult:
    """Every step validator except the preview one, merged."""
    result: ValidationResult = ValidationResult()
    for step in (
        WizardStep.TABLE_SELECTION,
        WizardStep.ENDPOINT_CONFIGURATION,
        WizardStep.SECURITY_CONFIGURATION,
    ):
        result.merge(validate_step(state, step, max_tables))
    if result.is_valid:
        logger.info("Validation PASSED. %s", result.summary())
    else:
        logger.error("Validation FAILED with %d error(s).", result.error_count)
    return result


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_preview_specification",
    "validate_table_selection",
    "validate_endpoint_configurations",
    "validate_security_configurations",
    "validate_preview_step",
    "validate_step",
    "validate_all",
]
