# File: apiwizard/selection.py
"""
NexaFlow APIWizard - Selection Engine
======================================
Which discovered tables the user has chosen, and the search-filtered view
over them.

The selection set is independent of the search filter: a selected table
stays selected while it is filtered out of view.  Only a new discovery
result (``set_available``) or ``toggle`` / ``deselect_all`` removes it.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from apiwizard.configuration import default_configuration
from apiwizard.models import EndpointConfiguration, TableInfo, WorkflowState

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.selection")


# ---------------------------------------------------------------------------
# Filtered view
# ---------------------------------------------------------------------------


def _matches(table: TableInfo, needle: str) -> bool:
    haystack: List[str] = [table.name, table.label or "", table.description or ""]
    haystack.extend(f.name for f in table.fields)
    return any(needle in text.lower() for text in haystack)


def filter_tables(available: Dict[str, TableInfo], query: str) -> List[TableInfo]:
    """
    Case-insensitive substring match on name, label, description and field
    names.  An empty or whitespace-only query returns every table.

    Examples:
        >>> [t.name for t in filter_tables(tables, "USER")]
        ['users', 'user_roles']
    """
    needle: str = query.strip().lower()
    if not needle:
        return list(available.values())
    return [t for t in available.values() if _matches(t, needle)]


def filtered_tables(state: WorkflowState) -> List[TableInfo]:
    return filter_tables(state.available_tables, state.search_query)


def selected_ids(state: WorkflowState) -> List[str]:
    return list(state.selected_tables)


def is_selected(state: WorkflowState, table_id: str) -> bool:
    return table_id in state.selected_tables


# ---------------------------------------------------------------------------
# State operations
# ---------------------------------------------------------------------------


def set_available(state: WorkflowState, tables: Iterable[TableInfo]) -> WorkflowState:
    """
    Replace the available tables.

    Selected ids that are gone are dropped from the selection and from the
    configuration map.  Surviving selections are refreshed with the new
    table snapshot; their configurations are kept.
    """
    available: Dict[str, TableInfo] = {t.id: t for t in tables}

    selected: Dict[str, TableInfo] = {
        tid: available[tid] for tid in state.selected_tables if tid in available
    }
    configs: Dict[str, EndpointConfiguration] = {
        tid: cfg for tid, cfg in state.endpoint_configurations.items() if tid in selected
    }

    pruned: int = len(state.selected_tables) - len(selected)
    if pruned:
        logger.info("Discovery removed %d selected table(s).", pruned)
    return state.evolve(
        available_tables=available,
        selected_tables=selected,
        endpoint_configurations=configs,
    )


def toggle(state: WorkflowState, table_id: str) -> WorkflowState:
    """Select an unselected table (with a default configuration) or deselect a selected one."""
    if table_id in state.selected_tables:
        selected: Dict[str, TableInfo] = dict(state.selected_tables)
        configs: Dict[str, EndpointConfiguration] = dict(state.endpoint_configurations)
        del selected[table_id]
        configs.pop(table_id, None)
        logger.debug("Deselected '%s'.", table_id)
        return state.evolve(selected_tables=selected, endpoint_configurations=configs)

    table = state.available_tables.get(table_id)
    if table is None:
        logger.warning("toggle ignored: unknown table '%s'.", table_id)
        return state

    selected = dict(state.selected_tables)
    configs = dict(state.endpoint_configurations)
    selected[table_id] = table
    configs[table_id] = default_configuration(
        table, state.global_configuration, state.service_id
    )
    logger.debug("Selected '%s'.", table_id)
    return state.evolve(selected_tables=selected, endpoint_configurations=configs)


def select_all(state: WorkflowState) -> WorkflowState:
    """Select every table in the filtered view; other selections are untouched."""
    selected: Dict[str, TableInfo] = dict(state.selected_tables)
    configs: Dict[str, EndpointConfiguration] = dict(state.endpoint_configurations)
    added: int = 0
    for table in filtered_tables(state):
        if table.id in selected:
            continue
        selected[table.id] = table
        configs[table.id] = default_configuration(
            table, state.global_configuration, state.service_id
        )
        added += 1
    if not added:
        return state
    logger.debug("select_all added %d table(s).", added)
    return state.evolve(selected_tables=selected, endpoint_configurations=configs)


def deselect_all(state: WorkflowState) -> WorkflowState:
    """Deselect every table in the filtered view; hidden selections are untouched."""
    visible = {t.id for t in filtered_tables(state)}
    selected: Dict[str, TableInfo] = {
        tid: t for tid, t in state.selected_tables.items() if tid not in visible
    }
    if len(selected) == len(state.selected_tables):
        return state
    configs: Dict[str, EndpointConfiguration] = {
        tid: cfg for tid, cfg in state.endpoint_configurations.items() if tid in selected
    }
    return state.evolve(selected_tables=selected, endpoint_configurations=configs)


def set_search_query(state: WorkflowState, query: str) -> WorkflowState:
    return state.evolve(search_query=query)
