# File: apiwizard/coordinator.py
"""
NexaFlow APIWizard - Preview / Generation Coordinator
======================================================
Owns every request to the admin service and the policy around it.

    Operation        Cache key                         Policy
    ---------------  --------------------------------  --------------------------
    discovery        service id                        stale-while-revalidate,
                                                       in-flight dedup, retried
    preview          (service id, sorted table ids)    fresh + same config only,
                                                       last request wins, retried
    generation       none                              single shot, never retried

The coordinator never touches ``WorkflowState``.  It returns results (or
``PreviewOutcome`` records) and the store decides how to apply them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from apiwizard.cache import CacheEntry, QueryCache
from apiwizard.errors import ExecutionError, RequestTimeoutError, WizardError
from apiwizard.models import (
    EndpointConfiguration,
    GenerationResult,
    GenerationStatistics,
    GlobalConfiguration,
    TableInfo,
)
from apiwizard.schema import parse_schema_response
from apiwizard.settings import WizardSettings
from apiwizard.utils import Timer, backoff_delay, fingerprint
from apiwizard.validators import validate_preview_specification

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.coordinator")

T = TypeVar("T")
S = TypeVar("S")

#: Called with the index of the generation sub-step about to start.
ProgressCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    timeout: float,
    base_delay: float,
    max_delay: float,
    label: str = "request",
) -> T:
    """
    Await ``operation()`` up to ``attempts`` times.

    Each attempt is bounded by ``timeout`` seconds.  Timeouts and
    ``WizardError``s flagged ``retryable`` are retried after an exponential
    backoff; anything else is raised immediately, as is the last failure.
    """
    for attempt in range(attempts):
        last_attempt: bool = attempt + 1 >= attempts
        try:
            return await asyncio.wait_for(operation(), timeout)
        except asyncio.TimeoutError as exc:
            if last_attempt:
                raise RequestTimeoutError(f"{label} timed out after {timeout}s") from exc
            reason: str = "timeout"
        except WizardError as exc:
            if last_attempt or not exc.retryable:
                raise
            reason = exc.message

        delay: float = backoff_delay(attempt, base_delay, max_delay)
        logger.warning(
            "%s failed (%s); retry %d/%d in %.2fs.",
            label, reason, attempt + 1, attempts - 1, delay,
        )
        await asyncio.sleep(delay)

    raise ValueError("attempts must be >= 1")


# ---------------------------------------------------------------------------
# Optimistic mutation
# ---------------------------------------------------------------------------


async def optimistic_mutation(
    snapshot: Callable[[], S],
    apply: Callable[[], None],
    attempt: Callable[[], Awaitable[T]],
    restore: Callable[[S], None],
    reconcile: Callable[[], Awaitable[Any]],
) -> T:
    """
    snapshot → apply → attempt → (commit | restore(snapshot)) → reconcile.

    ``apply`` shows the change locally before ``attempt`` sends it.  If the
    attempt raises, ``restore`` receives the snapshot taken just before
    ``apply`` and the error propagates.  ``reconcile`` runs in both cases;
    its own failure is logged and does not mask the outcome.
    """
    saved: S = snapshot()
    apply()
    try:
        result: T = await attempt()
    except Exception:
        restore(saved)
        logger.info("Optimistic change rolled back.")
        raise
    finally:
        try:
            await reconcile()
        except (WizardError, ValueError) as exc:
            logger.warning("Reconcile after mutation failed: %s", exc)
    return result


# ---------------------------------------------------------------------------
# Preview outcome
# ---------------------------------------------------------------------------


class PreviewOutcome:
    """What one ``generate_preview`` call produced."""

    __slots__ = (
        "key",
        "specification",
        "validation_errors",
        "error",
        "superseded",
        "from_cache",
    )

    def __init__(
        self,
        key: Hashable,
        specification: Optional[Dict[str, Any]] = None,
        validation_errors: Optional[List[str]] = None,
        error: Optional[str] = None,
        superseded: bool = False,
        from_cache: bool = False,
    ) -> None:
        self.key: Hashable = key
        self.specification: Optional[Dict[str, Any]] = specification
        self.validation_errors: List[str] = validation_errors or []
        self.error: Optional[str] = error
        self.superseded: bool = superseded
        self.from_cache: bool = from_cache

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.specification is not None and not self.validation_errors

    def __repr__(self) -> str:
        state: str = "superseded" if self.superseded else ("error" if self.error else "ok")
        return f"<PreviewOutcome {self.key} {state}>"


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def preview_key(service_id: str, table_ids: Any) -> Tuple[str, Tuple[str, ...]]:
    """Cache key for a preview; selection order never changes it."""
    return service_id, tuple(sorted(table_ids))


def _configurations_payload(
    configurations: Mapping[str, EndpointConfiguration],
) -> Dict[str, Any]:
    return {tid: cfg.model_dump(mode="json") for tid, cfg in sorted(configurations.items())}


def build_preview_payload(
    selected_tables: Mapping[str, TableInfo],
    configurations: Mapping[str, EndpointConfiguration],
    global_configuration: GlobalConfiguration,
) -> Dict[str, Any]:
    return {
        "tables": sorted(t.name for t in selected_tables.values()),
        "configurations": _configurations_payload(configurations),
        "globalConfiguration": global_configuration.model_dump(mode="json"),
    }


def build_generate_payload(
    selected_tables: Mapping[str, TableInfo],
    configurations: Mapping[str, EndpointConfiguration],
    preview_spec: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    return {
        "tables": sorted(t.name for t in selected_tables.values()),
        "configurations": _configurations_payload(configurations),
        "openApiSpec": dict(preview_spec) if preview_spec else None,
    }


def _spec_size(spec: Optional[Mapping[str, Any]]) -> int:
    if not spec:
        return 0
    return len(json.dumps(spec, default=str).encode("utf-8"))


def _schema_count(spec: Optional[Mapping[str, Any]]) -> int:
    components: Any = (spec or {}).get("components")
    if isinstance(components, Mapping) and isinstance(components.get("schemas"), Mapping):
        return len(components["schemas"])
    return 0


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class Coordinator:
    """
    Request policy for discovery, preview and generation.

    Args:
        client: Anything with the ``ServiceClient`` coroutine methods
            (``get_schema``, ``post_preview``, ``post_generate``,
            ``delete_relationship``).
        settings: Timeouts, staleness windows and retry policy.
        clock: Monotonic time source for cache staleness.
    """

    def __init__(
        self,
        client: Any,
        settings: Optional[WizardSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client: Any = client
        self.settings: WizardSettings = settings or WizardSettings()
        self.discovery_cache: QueryCache = QueryCache(
            self.settings.discovery_stale_seconds, clock=clock
        )
        self.preview_cache: QueryCache = QueryCache(
            self.settings.preview_stale_seconds, clock=clock
        )
        self._background: Set["asyncio.Task[Any]"] = set()

    async def _retrying(self, operation: Callable[[], Awaitable[T]], attempts: int, label: str) -> T:
        return await call_with_retry(
            operation,
            attempts=attempts,
            timeout=self.settings.request_timeout,
            base_delay=self.settings.retry_base_delay,
            max_delay=self.settings.retry_max_delay,
            label=label,
        )

    # -- Discovery ----------------------------------------------------------

    async def discover_tables(
        self,
        service_id: str,
        force: bool = False,
        on_refresh: Optional[Callable[[List[TableInfo]], None]] = None,
    ) -> List[TableInfo]:
        """
        Tables of ``service_id``.

        A cached result is returned immediately; if it is stale a background
        refresh starts and ``on_refresh`` receives its tables.  Concurrent
        callers share one request.  The final failure after retries is
        raised; cached data is never replaced by a failure.
        """
        entry: Optional[CacheEntry] = self.discovery_cache.get(service_id)
        if entry is not None and not force:
            if self.discovery_cache.is_stale(entry):
                self._refresh_in_background(service_id, on_refresh)
            return list(entry.data)
        return await self._fetch_tables(service_id)

    async def _fetch_tables(self, service_id: str) -> List[TableInfo]:
        task = self.discovery_cache.inflight(service_id)
        if task is None:
            generation: int = self.discovery_cache.next_generation(service_id)
            task = asyncio.ensure_future(self._load_tables(service_id, generation))
            self.discovery_cache.track(service_id, task)
        else:
            logger.debug("Joining in-flight discovery for '%s'.", service_id)
        return list(await asyncio.shield(task))

    async def _load_tables(self, service_id: str, generation: int) -> List[TableInfo]:
        payload: Any = await self._retrying(
            lambda: self.client.get_schema(service_id),
            self.settings.discovery_max_attempts,
            f"discovery of '{service_id}'",
        )
        tables: List[TableInfo] = parse_schema_response(payload)
        if self.discovery_cache.is_latest(service_id, generation):
            self.discovery_cache.put(service_id, tables)
        logger.info("Discovered %d table(s) in '%s'.", len(tables), service_id)
        return tables

    def _refresh_in_background(
        self,
        service_id: str,
        on_refresh: Optional[Callable[[List[TableInfo]], None]],
    ) -> None:
        if self.discovery_cache.inflight(service_id) is not None:
            return
        logger.debug("Discovery cache for '%s' is stale; refreshing.", service_id)
        task = asyncio.ensure_future(self._fetch_tables(service_id))
        self._background.add(task)

        def _done(done: "asyncio.Task[List[TableInfo]]") -> None:
            self._background.discard(done)
            if done.cancelled():
                return
            exc: Optional[BaseException] = done.exception()
            if exc is not None:
                logger.warning("Background discovery of '%s' failed: %s", service_id, exc)
            elif on_refresh is not None:
                on_refresh(done.result())

        task.add_done_callback(_done)

    def invalidate_discovery(self, service_id: Optional[str] = None) -> None:
        self.discovery_cache.invalidate(service_id)

    # -- Preview ------------------------------------------------------------

    async def generate_preview(
        self,
        service_id: str,
        selected_tables: Mapping[str, TableInfo],
        configurations: Mapping[str, EndpointConfiguration],
        global_configuration: GlobalConfiguration,
    ) -> PreviewOutcome:
        """
        Fetch (or reuse) the preview document for the current selection.

        Never raises for request failures: they come back as
        ``PreviewOutcome.error``.  An outcome whose request was overtaken by
        a newer one for the same key has ``superseded`` set and must be
        discarded.
        """
        key = preview_key(service_id, selected_tables.keys())
        payload: Dict[str, Any] = build_preview_payload(
            selected_tables, configurations, global_configuration
        )
        config_fp: str = fingerprint(payload)

        cached: Optional[CacheEntry] = self.preview_cache.fresh(key, config_fp)
        if cached is not None:
            logger.debug("Preview cache hit for %s.", key)
            return PreviewOutcome(
                key,
                specification=cached.data,
                validation_errors=validate_preview_specification(cached.data),
                from_cache=True,
            )

        generation: int = self.preview_cache.next_generation(key)
        try:
            spec: Dict[str, Any] = await self._retrying(
                lambda: self.client.post_preview(service_id, payload),
                self.settings.preview_max_attempts,
                f"preview of {key}",
            )
        except WizardError as exc:
            if not self.preview_cache.is_latest(key, generation):
                return PreviewOutcome(key, superseded=True)
            logger.error("Preview for %s failed: %s", key, exc.message)
            return PreviewOutcome(key, error=exc.message)

        if not self.preview_cache.is_latest(key, generation):
            logger.debug("Discarding superseded preview #%d for %s.", generation, key)
            return PreviewOutcome(key, superseded=True)

        self.preview_cache.put(key, spec, config_fp)
        problems: List[str] = validate_preview_specification(spec)
        logger.info(
            "Preview for %s received (%d validation problem(s)).", key, len(problems)
        )
        return PreviewOutcome(key, specification=spec, validation_errors=problems)

    def invalidate_preview(self) -> None:
        """Forget every cached preview and supersede requests in flight."""
        self.preview_cache.invalidate()

    # -- Execution ----------------------------------------------------------

    async def execute_generation(
        self,
        service_id: str,
        selected_tables: Mapping[str, TableInfo],
        configurations: Mapping[str, EndpointConfiguration],
        preview_spec: Optional[Mapping[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """
        Run endpoint generation once.

        Sub-steps reported through ``on_progress``: 0 validate configuration,
        1 validate specification, 2 generate, 3 finalize.  Statistics the
        server leaves out are filled in locally.

        Raises:
            ExecutionError: For every failure, including transport errors.
        """
        def _step(index: int) -> None:
            if on_progress is not None:
                on_progress(index)

        with Timer("generation") as timer:
            _step(0)
            if not selected_tables:
                raise ExecutionError("No tables selected for generation")
            missing: List[str] = [tid for tid in selected_tables if tid not in configurations]
            if missing:
                raise ExecutionError(f"Configuration missing for table(s): {', '.join(missing)}")

            _step(1)
            if preview_spec is not None:
                problems: List[str] = validate_preview_specification(preview_spec)
                if problems:
                    raise ExecutionError("Specification is invalid: " + "; ".join(problems))

            _step(2)
            payload: Dict[str, Any] = build_generate_payload(
                selected_tables, configurations, preview_spec
            )
            try:
                body: Dict[str, Any] = await self.client.post_generate(service_id, payload)
            except WizardError as exc:
                raise ExecutionError(f"Generation request failed: {exc.message}") from exc

            _step(3)
            result: GenerationResult = GenerationResult.model_validate(body)
            if not result.success:
                raise ExecutionError(result.error or "Generation failed")

        stats: GenerationStatistics = result.statistics or GenerationStatistics()
        filled: Dict[str, Any] = {}
        if not stats.tables_processed:
            filled["tables_processed"] = len(selected_tables)
        if not stats.endpoints_generated:
            filled["endpoints_generated"] = len(result.endpoint_urls)
        if not stats.schemas_created:
            filled["schemas_created"] = _schema_count(preview_spec)
        if not stats.generation_duration:
            filled["generation_duration"] = round(timer.elapsed_ms, 3)
        if not stats.specification_size:
            filled["specification_size"] = _spec_size(preview_spec)

        logger.info(
            "Generated %d endpoint(s) for '%s'.", len(result.endpoint_urls), service_id
        )
        return result.model_copy(update={"statistics": stats.model_copy(update=filled)})

    # -- Mutations ----------------------------------------------------------

    async def delete_relationship(self, service_id: str, table_name: str, relationship: str) -> None:
        """Not retried: a repeated DELETE may report a spurious failure."""
        await self.client.delete_relationship(service_id, table_name, relationship)

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        self._background.clear()
