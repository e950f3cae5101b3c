# File: apiwizard/__init__.py
"""
NexaFlow APIWizard: API Generation Workflow Engine
====================================================

Drives the multi-step generation of REST endpoints for a database service:
table discovery and selection, per-table endpoint configuration, OpenAPI
preview, and the final generation request to the admin service.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ WorkflowStore │────▶│   Coordinator    │
    │   (cli.py)   │     │  (store.py)   │     │ (coordinator.py) │
    └──────────────┘     └───────┬───────┘     └────────┬─────────┘
                                 │                      │
                    ┌────────────┼────────────┐         ▼
                    ▼            ▼            ▼   ┌───────────────┐
             ┌─────────┐ ┌─────────────┐ ┌──────────┐ │ ServiceClient │
             │selection│ │configuration│ │navigation│ │  (client.py)  │
             └─────────┘ └─────────────┘ └──────────┘ └───────────────┘

Usage::

    # As a library
    from apiwizard import Coordinator, ServiceClient, WizardSettings, WorkflowStore
    settings = WizardSettings(base_url="https://admin.example.com/api/v2")
    async with ServiceClient(settings) as client:
        store = WorkflowStore(Coordinator(client, settings))
        store.set_service("mysql_db")
        await store.discover_tables()
        store.select_all()
        await store.generate_preview()

    # From the command line
    python -m apiwizard --service mysql_db --all-tables --preview-only

Public API:
    - WorkflowStore: State container and action set
    - Coordinator: Discovery / preview / generation request policy
    - ServiceClient: httpx adapter for the admin service
    - WizardSettings: Connection, cache and retry settings
    - WorkflowState: Immutable workflow snapshot
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "NexaFlow Team"
__license__: str = "MIT"

from apiwizard.models import (
    EndpointConfiguration,
    FieldInfo,
    FieldType,
    GenerationProgress,
    GenerationResult,
    GenerationStatistics,
    GlobalConfiguration,
    HTTPMethod,
    PreviewSpecification,
    RelationshipInfo,
    TableInfo,
    WizardStep,
    WorkflowState,
)
from apiwizard.errors import (
    ConfigurationError,
    ExecutionError,
    RequestTimeoutError,
    ServerError,
    TransportError,
    WizardError,
)
from apiwizard.settings import WizardSettings, load_settings
from apiwizard.validators import ValidationResult, validate_step
from apiwizard.client import ServiceClient
from apiwizard.coordinator import Coordinator, PreviewOutcome
from apiwizard.store import WorkflowStore, provide_store, use_store

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Store & coordination
    "WorkflowStore",
    "provide_store",
    "use_store",
    "Coordinator",
    "PreviewOutcome",
    "ServiceClient",
    # Settings
    "WizardSettings",
    "load_settings",
    # Models
    "EndpointConfiguration",
    "FieldInfo",
    "FieldType",
    "GenerationProgress",
    "GenerationResult",
    "GenerationStatistics",
    "GlobalConfiguration",
    "HTTPMethod",
    "PreviewSpecification",
    "RelationshipInfo",
    "TableInfo",
    "WizardStep",
    "WorkflowState",
    # Errors
    "WizardError",
    "TransportError",
    "RequestTimeoutError",
    "ServerError",
    "ExecutionError",
    "ConfigurationError",
    # Validation
    "ValidationResult",
    "validate_step",
]
