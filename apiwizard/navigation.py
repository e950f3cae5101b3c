# File: apiwizard/navigation.py
"""
NexaFlow APIWizard - Navigation State Machine
==============================================
Linear step progression with an advisory validation gate and a hard lock.

    table-selection → endpoint-configuration → security-configuration
                    → preview-and-generate

Moving between steps is never gated by ``can_advance``; callers decide
whether to consult it.  While ``navigation_locked`` is set (a generation
run is executing) every navigation call returns the state unchanged.
The lock is toggled only by ``lock`` / ``unlock``, which the generation
lifecycle (start / complete / error) calls.
"""

from __future__ import annotations

import logging
from typing import List

from apiwizard.models import (
    GenerationProgress,
    PreviewSpecification,
    WizardStep,
    WorkflowState,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.navigation")

STEP_ORDER: List[WizardStep] = [
    WizardStep.TABLE_SELECTION,
    WizardStep.ENDPOINT_CONFIGURATION,
    WizardStep.SECURITY_CONFIGURATION,
    WizardStep.PREVIEW_AND_GENERATE,
]


def step_index(step: WizardStep) -> int:
    return STEP_ORDER.index(WizardStep(step))


def _move(state: WorkflowState, target: WizardStep, action: str) -> WorkflowState:
    if state.navigation_locked:
        logger.warning("%s ignored: navigation is locked.", action)
        return state
    if target == state.current_step:
        return state
    logger.debug("Step %s → %s.", state.current_step.value, target.value)
    return state.evolve(current_step=target)


def go_to_next_step(state: WorkflowState) -> WorkflowState:
    index: int = step_index(state.current_step)
    if index == len(STEP_ORDER) - 1:
        return state
    return _move(state, STEP_ORDER[index + 1], "go_to_next_step")


def go_to_previous_step(state: WorkflowState) -> WorkflowState:
    index: int = step_index(state.current_step)
    if index == 0:
        return state
    return _move(state, STEP_ORDER[index - 1], "go_to_previous_step")


def go_to_step(state: WorkflowState, step: WizardStep) -> WorkflowState:
    return _move(state, WizardStep(step), "go_to_step")


def mark_step_completed(state: WorkflowState, step: WizardStep) -> WorkflowState:
    """Add ``step`` to the completed set; idempotent."""
    step = WizardStep(step)
    if step in state.completed_steps:
        return state
    return state.evolve(completed_steps=state.completed_steps | {step})


def can_advance(state: WorkflowState, from_step: WizardStep) -> bool:
    """
    Pure predicate deciding whether the user may leave ``from_step``.

    - table-selection: at least one table selected.
    - endpoint-configuration / security-configuration: the step itself was
      explicitly marked completed.
    - preview-and-generate: last step, never advances.
    """
    step: WizardStep = WizardStep(from_step)
    if step == WizardStep.TABLE_SELECTION:
        return bool(state.selected_tables)
    if step in (WizardStep.ENDPOINT_CONFIGURATION, WizardStep.SECURITY_CONFIGURATION):
        return step in state.completed_steps
    return False


def reset(state: WorkflowState) -> WorkflowState:
    """
    Back to the first step with no selections, configurations, preview or
    generation record.  Discovered tables, the service id and the global
    template survive.
    """
    logger.debug("Workflow reset.")
    return state.evolve(
        current_step=WizardStep.TABLE_SELECTION,
        completed_steps=frozenset(),
        navigation_locked=False,
        selected_tables={},
        search_query="",
        endpoint_configurations={},
        generation_progress=GenerationProgress(),
        preview=PreviewSpecification(),
        is_previewing=False,
    )


def lock(state: WorkflowState) -> WorkflowState:
    return state.evolve(navigation_locked=True)


def unlock(state: WorkflowState) -> WorkflowState:
    return state.evolve(navigation_locked=False)
