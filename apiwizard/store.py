# File: apiwizard/store.py
"""
NexaFlow APIWizard - Workflow Store
====================================
The aggregate root: one ``WorkflowState`` snapshot plus every action the
presentation layer may invoke.

Synchronous actions run an engine function (``selection``,
``configuration``, ``navigation``) and swap in the resulting snapshot in a
single assignment; subscribers are then called with the new snapshot.
Async actions go through the ``Coordinator`` and apply its results the
same way.

A store is built explicitly and has no side effects on construction.
``provide_store`` makes one available to code running in the current
context; ``use_store`` retrieves it.

Usage:
    coordinator = Coordinator(ServiceClient(settings), settings)
    with provide_store(WorkflowStore(coordinator)) as store:
        store.set_service("mysql_db")
        await store.discover_tables()
        store.select_all()
        await store.generate_preview()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from apiwizard import configuration, navigation, selection
from apiwizard.configuration import Partial, default_global_configuration
from apiwizard.coordinator import Coordinator, PreviewOutcome, optimistic_mutation
from apiwizard.errors import ExecutionError, WizardError
from apiwizard.models import (
    GENERATION_SUB_STEPS,
    GenerationProgress,
    GenerationResult,
    PreviewSpecification,
    TableInfo,
    WizardStep,
    WorkflowState,
)
from apiwizard.settings import WizardSettings
from apiwizard.validators import ValidationResult, validate_step

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.store")

Listener = Callable[[WorkflowState], None]


class WorkflowStore:
    """
    Holds the current workflow snapshot and exposes the action set.

    While a generation run holds the navigation lock, selection and
    configuration edits are still accepted.  The run works from the
    snapshot taken when it started, so they only affect the next preview.

    Args:
        coordinator: Needed only by the async actions.
        settings: Defaults to the coordinator's settings.
        state: Initial snapshot; a fresh one with the built-in global
            template otherwise.
    """

    def __init__(
        self,
        coordinator: Optional[Coordinator] = None,
        settings: Optional[WizardSettings] = None,
        state: Optional[WorkflowState] = None,
    ) -> None:
        self.coordinator: Optional[Coordinator] = coordinator
        self.settings: WizardSettings = settings or (
            coordinator.settings if coordinator is not None else WizardSettings()
        )
        self._state: WorkflowState = state or WorkflowState(
            global_configuration=default_global_configuration()
        )
        self._listeners: List[Listener] = []
        self._preview_ticket: int = 0

    # -- Snapshot & subscription -------------------------------------------

    @property
    def state(self) -> WorkflowState:
        """Current snapshot (frozen; never changes after it is handed out)."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _commit(self, new_state: WorkflowState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    def _commit_input_change(self, new_state: WorkflowState) -> None:
        """Commit a selection or configuration change and retire the preview."""
        if new_state is self._state:
            return
        if self.coordinator is not None:
            self.coordinator.invalidate_preview()
        self._preview_ticket += 1
        preview: PreviewSpecification = new_state.preview
        if preview.specification is not None and not preview.stale:
            preview = preview.model_copy(update={"stale": True})
        self._commit(new_state.evolve(preview=preview, is_previewing=False))

    def _require_coordinator(self) -> Coordinator:
        if self.coordinator is None:
            raise WizardError("This store has no coordinator; async actions are unavailable.")
        return self.coordinator

    def _require_service(self) -> str:
        if not self._state.service_id:
            raise WizardError("No service selected; call set_service() first.")
        return self._state.service_id

    # -- Service ------------------------------------------------------------

    def set_service(self, service_id: str) -> None:
        """Switch services; everything except the global template starts over."""
        if service_id == self._state.service_id:
            return
        logger.debug("Service set to '%s'.", service_id)
        self._preview_ticket += 1
        if self.coordinator is not None:
            self.coordinator.invalidate_preview()
        self._commit(
            WorkflowState(
                service_id=service_id,
                global_configuration=self._state.global_configuration,
            )
        )

    # -- Selection ----------------------------------------------------------

    def set_available_tables(self, tables: List[TableInfo]) -> None:
        new_state: WorkflowState = selection.set_available(self._state, tables)
        if new_state.selected_tables.keys() != self._state.selected_tables.keys():
            self._commit_input_change(new_state)
        else:
            self._commit(new_state)

    def toggle_table(self, table_id: str) -> None:
        self._commit_input_change(selection.toggle(self._state, table_id))

    def select_all(self) -> None:
        self._commit_input_change(selection.select_all(self._state))

    def deselect_all(self) -> None:
        self._commit_input_change(selection.deselect_all(self._state))

    def set_search_query(self, query: str) -> None:
        self._commit(selection.set_search_query(self._state, query))

    @property
    def filtered_tables(self) -> List[TableInfo]:
        return selection.filtered_tables(self._state)

    # -- Configuration ------------------------------------------------------

    def update_configuration(self, table_id: str, partial: Partial) -> None:
        self._commit_input_change(
            configuration.update_configuration(self._state, table_id, partial)
        )

    def update_global_default(self, partial: Partial) -> None:
        self._commit_input_change(configuration.update_global_default(self._state, partial))

    def apply_global_to_selected(self) -> None:
        self._commit_input_change(configuration.apply_global_to_selected(self._state))

    # -- Navigation ---------------------------------------------------------

    def go_to_next_step(self) -> None:
        self._commit(navigation.go_to_next_step(self._state))

    def go_to_previous_step(self) -> None:
        self._commit(navigation.go_to_previous_step(self._state))

    def go_to_step(self, step: WizardStep) -> None:
        self._commit(navigation.go_to_step(self._state, step))

    def mark_step_completed(self, step: WizardStep) -> None:
        self._commit(navigation.mark_step_completed(self._state, step))

    def can_advance(self, from_step: Optional[WizardStep] = None) -> bool:
        return navigation.can_advance(self._state, from_step or self._state.current_step)

    def validate_step(self, step: Optional[WizardStep] = None) -> ValidationResult:
        return validate_step(
            self._state,
            step or self._state.current_step,
            max_tables=self.settings.max_selected_tables,
        )

    def reset(self) -> None:
        self._preview_ticket += 1
        if self.coordinator is not None:
            self.coordinator.invalidate_preview()
        self._commit(navigation.reset(self._state))

    # -- Generation lifecycle ----------------------------------------------

    def start_generation(self) -> None:
        """
        Lock navigation for a run.

        Endpoints and statistics of the previous run stay visible until this
        one completes.
        """
        progress: GenerationProgress = self._state.generation_progress.model_copy(
            update={
                "current_step": 0,
                "completed_steps": [],
                "is_generating": True,
                "error": None,
            }
        )
        self._commit(
            navigation.lock(self._state).evolve(generation_progress=progress)
        )
        logger.info("Generation started; navigation locked.")

    def advance_generation_step(self, index: int) -> None:
        progress: GenerationProgress = self._state.generation_progress.model_copy(
            update={"current_step": index, "completed_steps": list(range(index))}
        )
        logger.debug("Generation sub-step %d: %s", index, GENERATION_SUB_STEPS[index])
        self._commit(self._state.evolve(generation_progress=progress))

    def complete_generation(self, result: GenerationResult) -> None:
        last: int = len(GENERATION_SUB_STEPS) - 1
        progress: GenerationProgress = GenerationProgress(
            current_step=last,
            completed_steps=list(range(last + 1)),
            is_generating=False,
            generated_endpoints=list(result.endpoint_urls),
            statistics=result.statistics,
            warnings=list(result.warnings),
        )
        new_state: WorkflowState = navigation.unlock(self._state).evolve(
            generation_progress=progress
        )
        self._commit(navigation.mark_step_completed(new_state, WizardStep.PREVIEW_AND_GENERATE))
        logger.info("Generation complete; navigation unlocked.")

    def set_generation_error(self, message: str) -> None:
        progress: GenerationProgress = self._state.generation_progress.model_copy(
            update={"is_generating": False, "error": message}
        )
        self._commit(navigation.unlock(self._state).evolve(generation_progress=progress))
        logger.error("Generation failed: %s", message)

    def clear_errors(self) -> None:
        state: WorkflowState = self._state
        changes: Dict[str, Any] = {}
        if state.discovery_error is not None:
            changes["discovery_error"] = None
        if state.preview.error is not None:
            changes["preview"] = state.preview.model_copy(update={"error": None})
        if state.generation_progress.error is not None and not state.generation_progress.is_generating:
            changes["generation_progress"] = state.generation_progress.model_copy(
                update={"error": None}
            )
        if changes:
            self._commit(state.evolve(**changes))

    # -- Async actions ------------------------------------------------------

    def _apply_tables(self, service_id: str, tables: List[TableInfo]) -> None:
        if self._state.service_id != service_id:
            logger.debug("Dropping tables for '%s'; service changed.", service_id)
            return
        self.set_available_tables(tables)
        if self._state.is_discovering:
            self._commit(self._state.evolve(is_discovering=False))

    async def discover_tables(self, force: bool = False) -> List[TableInfo]:
        """
        Load the current service's tables into ``available_tables``.

        Raises:
            WizardError: After retries are exhausted; also recorded in
                ``discovery_error``.  Previously discovered tables stay.
        """
        coordinator: Coordinator = self._require_coordinator()
        service_id: str = self._require_service()
        self._commit(self._state.evolve(is_discovering=True, discovery_error=None))
        try:
            tables: List[TableInfo] = await coordinator.discover_tables(
                service_id,
                force=force,
                on_refresh=lambda fresh: self._apply_tables(service_id, fresh),
            )
        except (WizardError, ValueError) as exc:
            if self._state.service_id == service_id:
                self._commit(
                    self._state.evolve(is_discovering=False, discovery_error=str(exc))
                )
            logger.error("Discovery of '%s' failed: %s", service_id, exc)
            raise
        self._apply_tables(service_id, tables)
        return tables

    async def generate_preview(self) -> PreviewOutcome:
        """
        Fetch the preview for the current selection and configuration.

        Only the most recent call updates ``preview``.  A failed request
        keeps the previous specification and sets ``preview.error``.
        """
        coordinator: Coordinator = self._require_coordinator()
        service_id: str = self._require_service()

        self._preview_ticket += 1
        ticket: int = self._preview_ticket
        snapshot: WorkflowState = self._state
        self._commit(
            snapshot.evolve(
                is_previewing=True,
                preview=snapshot.preview.model_copy(update={"error": None}),
            )
        )

        outcome: PreviewOutcome = await coordinator.generate_preview(
            service_id,
            snapshot.selected_tables,
            snapshot.endpoint_configurations,
            snapshot.global_configuration,
        )
        if outcome.superseded or ticket != self._preview_ticket:
            logger.debug("Preview result for %s discarded (superseded).", outcome.key)
            outcome.superseded = True
            return outcome

        if outcome.error is not None:
            preview: PreviewSpecification = self._state.preview.model_copy(
                update={"error": outcome.error}
            )
        else:
            preview = PreviewSpecification(
                specification=outcome.specification,
                is_valid=not outcome.validation_errors,
                validation_errors=list(outcome.validation_errors),
                last_updated=datetime.now(timezone.utc),
            )
        self._commit(self._state.evolve(preview=preview, is_previewing=False))
        return outcome

    async def execute_generation(self) -> GenerationResult:
        """
        Generate the endpoints for the current selection.  Not retried.

        Raises:
            ExecutionError: If a run is already in progress, or if this one
                failed; the message is also stored on ``generation_progress``.
        """
        coordinator: Coordinator = self._require_coordinator()
        service_id: str = self._require_service()
        if self._state.navigation_locked:
            raise ExecutionError("A generation run is already in progress")

        snapshot: WorkflowState = self._state
        self.start_generation()
        try:
            result: GenerationResult = await coordinator.execute_generation(
                service_id,
                snapshot.selected_tables,
                snapshot.endpoint_configurations,
                snapshot.preview.specification,
                on_progress=self.advance_generation_step,
            )
        except asyncio.CancelledError:
            self.set_generation_error("Generation cancelled")
            raise
        except Exception as exc:
            self.set_generation_error(str(exc))
            raise
        self.complete_generation(result)
        return result

    async def delete_relationship(self, table_id: str, relationship: str) -> None:
        """
        Delete a relationship, removing it locally before the request.

        On failure the table's previous relationship list is restored and
        the error propagates.  Discovery is re-run afterwards either way.

        Raises:
            KeyError: Unknown table or relationship.
        """
        coordinator: Coordinator = self._require_coordinator()
        service_id: str = self._require_service()
        table: Optional[TableInfo] = self._state.available_tables.get(table_id)
        if table is None:
            raise KeyError(f"Unknown table '{table_id}'")
        if not any(r.name == relationship for r in table.relationships):
            raise KeyError(f"Table '{table_id}' has no relationship '{relationship}'")

        def _put(replacement: TableInfo) -> None:
            available: Dict[str, TableInfo] = dict(self._state.available_tables)
            available[table_id] = replacement
            changes: Dict[str, Any] = {"available_tables": available}
            if table_id in self._state.selected_tables:
                selected: Dict[str, TableInfo] = dict(self._state.selected_tables)
                selected[table_id] = replacement
                changes["selected_tables"] = selected
            self._commit(self._state.evolve(**changes))

        def _snapshot() -> TableInfo:
            return self._state.available_tables[table_id]

        def _apply() -> None:
            current: TableInfo = self._state.available_tables[table_id]
            _put(
                current.model_copy(
                    update={
                        "relationships": [
                            r for r in current.relationships if r.name != relationship
                        ]
                    }
                )
            )

        def _restore(previous: TableInfo) -> None:
            if table_id in self._state.available_tables:
                _put(previous)

        async def _reconcile() -> None:
            coordinator.invalidate_discovery(service_id)
            await self.discover_tables(force=True)

        await optimistic_mutation(
            _snapshot,
            _apply,
            lambda: coordinator.delete_relationship(service_id, table.name, relationship),
            _restore,
            _reconcile,
        )
        logger.info("Deleted relationship '%s' on '%s'.", relationship, table_id)

    def __repr__(self) -> str:
        return f"<WorkflowStore {self._state!r}>"


# ---------------------------------------------------------------------------
# Context-scoped provision
# ---------------------------------------------------------------------------

_current_store: ContextVar[Optional[WorkflowStore]] = ContextVar(
    "apiwizard_store", default=None
)


@contextlib.contextmanager
def provide_store(store: Optional[WorkflowStore] = None, **kwargs: Any) -> Iterator[WorkflowStore]:
    """Make ``store`` (or a new one built from ``kwargs``) current for this context."""
    provided: WorkflowStore = store if store is not None else WorkflowStore(**kwargs)
    token = _current_store.set(provided)
    try:
        yield provided
    finally:
        _current_store.reset(token)


def use_store() -> WorkflowStore:
    """
    The store provided for the current context.

    Raises:
        LookupError: Outside any ``provide_store`` block.
    """
    store: Optional[WorkflowStore] = _current_store.get()
    if store is None:
        raise LookupError("No WorkflowStore has been provided in this context.")
    return store
