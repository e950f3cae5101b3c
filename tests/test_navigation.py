"""
tests/test_navigation.py
Unit tests for apiwizard.navigation.
"""

from __future__ import annotations

from apiwizard.configuration import update_global_default
from apiwizard.models import GenerationProgress, PreviewSpecification, WizardStep, WorkflowState
from apiwizard.navigation import (
    STEP_ORDER,
    can_advance,
    go_to_next_step,
    go_to_previous_step,
    go_to_step,
    lock,
    mark_step_completed,
    reset,
    step_index,
    unlock,
)
from apiwizard.selection import select_all, set_search_query


# ===========================================================================
# Movement
# ===========================================================================


class TestMovement:
    """Linear progression and its boundaries."""

    def test_step_order(self) -> None:
        assert [s.value for s in STEP_ORDER] == [
            "table-selection",
            "endpoint-configuration",
            "security-configuration",
            "preview-and-generate",
        ]
        assert step_index(WizardStep.SECURITY_CONFIGURATION) == 2

    def test_next_walks_every_step(self, base_state: WorkflowState) -> None:
        state = base_state
        visited = [state.current_step]
        for _ in range(3):
            state = go_to_next_step(state)
            visited.append(state.current_step)
        assert visited == STEP_ORDER

    def test_next_at_last_step_is_noop(self, base_state: WorkflowState) -> None:
        state = go_to_step(base_state, WizardStep.PREVIEW_AND_GENERATE)
        assert go_to_next_step(state) is state

    def test_previous_at_first_step_is_noop(self, base_state: WorkflowState) -> None:
        assert go_to_previous_step(base_state) is base_state

    def test_previous(self, base_state: WorkflowState) -> None:
        state = go_to_step(base_state, WizardStep.SECURITY_CONFIGURATION)
        assert go_to_previous_step(state).current_step == WizardStep.ENDPOINT_CONFIGURATION

    def test_go_to_step_accepts_string(self, base_state: WorkflowState) -> None:
        state = go_to_step(base_state, "preview-and-generate")
        assert state.current_step == WizardStep.PREVIEW_AND_GENERATE

    def test_movement_not_gated_by_can_advance(self, base_state: WorkflowState) -> None:
        assert not can_advance(base_state, WizardStep.TABLE_SELECTION)
        assert go_to_next_step(base_state).current_step == WizardStep.ENDPOINT_CONFIGURATION


# ===========================================================================
# Lock
# ===========================================================================


class TestLock:
    """A locked workflow ignores every navigation call."""

    def test_locked_ignores_navigation(self, base_state: WorkflowState) -> None:
        state = lock(go_to_step(base_state, WizardStep.ENDPOINT_CONFIGURATION))
        assert go_to_next_step(state) is state
        assert go_to_previous_step(state) is state
        assert go_to_step(state, WizardStep.TABLE_SELECTION) is state

    def test_unlock_restores_navigation(self, base_state: WorkflowState) -> None:
        state = unlock(lock(base_state))
        assert not state.navigation_locked
        assert go_to_next_step(state).current_step == WizardStep.ENDPOINT_CONFIGURATION


# ===========================================================================
# Completion and gate
# ===========================================================================


class TestCanAdvance:
    """The advisory gate per step."""

    def test_table_selection_needs_selection(self, base_state: WorkflowState) -> None:
        assert not can_advance(base_state, WizardStep.TABLE_SELECTION)
        assert can_advance(select_all(base_state), WizardStep.TABLE_SELECTION)

    def test_configuration_steps_need_completion(self, base_state: WorkflowState) -> None:
        for step in (WizardStep.ENDPOINT_CONFIGURATION, WizardStep.SECURITY_CONFIGURATION):
            assert not can_advance(base_state, step)
            assert can_advance(mark_step_completed(base_state, step), step)

    def test_last_step_never_advances(self, base_state: WorkflowState) -> None:
        state = mark_step_completed(base_state, WizardStep.PREVIEW_AND_GENERATE)
        assert not can_advance(state, WizardStep.PREVIEW_AND_GENERATE)

    def test_mark_completed_idempotent(self, base_state: WorkflowState) -> None:
        once = mark_step_completed(base_state, WizardStep.ENDPOINT_CONFIGURATION)
        twice = mark_step_completed(once, "endpoint-configuration")
        assert twice is once
        assert once.completed_steps == {WizardStep.ENDPOINT_CONFIGURATION}


# ===========================================================================
# Reset
# ===========================================================================


class TestReset:
    """Reset clears the workflow but keeps discovery and the template."""

    def test_reset(self, base_state: WorkflowState) -> None:
        state = update_global_default(base_state, {"max_page_size": 50})
        state = set_search_query(select_all(state), "user")
        state = mark_step_completed(state, WizardStep.ENDPOINT_CONFIGURATION)
        state = go_to_step(state, WizardStep.PREVIEW_AND_GENERATE)
        state = state.evolve(
            preview=PreviewSpecification(specification={"openapi": "3.0.3"}),
            generation_progress=GenerationProgress(error="boom"),
            navigation_locked=True,
        )

        cleared = reset(state)

        assert cleared.current_step == WizardStep.TABLE_SELECTION
        assert cleared.completed_steps == frozenset()
        assert not cleared.navigation_locked
        assert cleared.selected_tables == {}
        assert cleared.endpoint_configurations == {}
        assert cleared.search_query == ""
        assert cleared.preview.specification is None
        assert cleared.generation_progress.error is None
        assert cleared.available_tables == base_state.available_tables
        assert cleared.service_id == "svc1"
        assert cleared.global_configuration.max_page_size == 50
