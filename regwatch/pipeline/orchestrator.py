"""
Pipeline orchestrator: one stateless invocation over the due sources.

Flow per source:
    Connector.fetch -> normalize -> classify -> dedup -> summarize -> insert

- Sources flagged ``critical`` run first, one at a time; the rest run
  under a semaphore of ``max_concurrent_sources``.
- A failing source never aborts the batch. Failures outside the
  per-source loop (loading the registry) and lost store connections
  propagate to the caller.
- Items within a source are processed in feed order.
- ``test_mode`` writes alerts to the scratch table and skips cooldown,
  registry, freshness and notification writes.
"""

import asyncio
import time
import uuid
from collections import Counter
from contextlib import AbstractAsyncContextManager
from typing import Callable

import structlog

from regwatch.alerts.classifier import Classifier
from regwatch.alerts.config import ClassifierConfig, DedupConfig
from regwatch.alerts.deduplication import Deduplicator
from regwatch.alerts.normalizer import normalize
from regwatch.alerts.repository import AlertRepository
from regwatch.config.settings import Settings, get_settings
from regwatch.enrichment.identifiers import extract_identifiers
from regwatch.enrichment.summarizer import Summarizer, create_summarizer
from regwatch.ingestion.connectors import create_connector
from regwatch.ingestion.errors import NoResultsError, ParseError
from regwatch.ingestion.http_client import HTTPClient, RetryConfig
from regwatch.ingestion.schemas import Empty, Err, FetchOrigin, RawItem
from regwatch.monitoring.repository import ErrorLogRepository, FreshnessRepository
from regwatch.monitoring.service import SourceHealthMonitor
from regwatch.notifications.dispatcher import NotificationConfig, NotificationDispatcher
from regwatch.observability.metrics import get_metrics
from regwatch.pipeline.config import PipelineConfig
from regwatch.pipeline.cooldown import CooldownStore
from regwatch.pipeline.scheduler import SourceRunState, advance, is_due, order_for_run
from regwatch.pipeline.schemas import PipelineRequest, PipelineResult, SourceRunResult
from regwatch.sources.schemas import Source
from regwatch.sources.service import SourcesService
from regwatch.storage.database import CONNECTION_ERRORS, Database

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[], AbstractAsyncContextManager[HTTPClient]]


class PipelineOrchestrator:
    """
    Runs the ingestion pipeline for every due source.

    Collaborators default to database-backed implementations built from
    ``database``; tests inject fakes.

    Usage:
        orchestrator = PipelineOrchestrator(database)
        result = await orchestrator.run(PipelineRequest(region="US"))
        result.to_response()
    """

    def __init__(
        self,
        database: Database,
        *,
        settings: Settings | None = None,
        config: PipelineConfig | None = None,
        sources: SourcesService | None = None,
        cooldown: CooldownStore | None = None,
        alerts: AlertRepository | None = None,
        scratch_alerts: AlertRepository | None = None,
        monitor: SourceHealthMonitor | None = None,
        dispatcher: NotificationDispatcher | None = None,
        classifier: Classifier | None = None,
        dedup_config: DedupConfig | None = None,
        summarizer: Summarizer | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._database = database
        self._settings = settings or get_settings()
        self._config = config or PipelineConfig()
        notification_config = NotificationConfig()

        self._sources = sources or SourcesService(database)
        self._cooldown = cooldown or CooldownStore(database)
        self._alerts = alerts or AlertRepository(database)
        self._scratch_alerts = scratch_alerts or AlertRepository(
            database, self._config.scratch_table
        )
        self._monitor = monitor or SourceHealthMonitor(
            FreshnessRepository(database),
            unhealthy_after=notification_config.unhealthy_after_failures,
        )
        self._dispatcher = dispatcher or NotificationDispatcher.from_settings(
            self._settings,
            notification_config,
            error_logs=ErrorLogRepository(database),
        )
        self._classifier = classifier or Classifier(ClassifierConfig())
        self._dedup_config = dedup_config or DedupConfig()
        self._summarizer = summarizer or create_summarizer(
            self._settings, self._config.summary_max_length
        )
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> HTTPClient:
        return HTTPClient(
            RetryConfig.from_settings(self._settings),
            timeout=self._settings.http_timeout_seconds,
            user_agent=self._settings.user_agent,
        )

    # ── Invocation ──────────────────────────────────────────────

    async def run(self, request: PipelineRequest | None = None) -> PipelineResult:
        """
        Run one invocation.

        Raises:
            Exception: Only for orchestration-level failures (the store
                cannot be reached, the source registry cannot be read).
        """
        request = request or PipelineRequest()
        run_id = uuid.uuid4().hex[:12]
        started = time.monotonic()
        result = PipelineResult(test_mode=request.test_mode)

        with structlog.contextvars.bound_contextvars(run_id=run_id):
            await self._database.connect()
            sources = await self._sources.get_active_sources(request.region, request.agency)
            logger.info(
                "Pipeline run started",
                sources=len(sources),
                region=request.region,
                agency=request.agency,
                force_refresh=request.force_refresh,
                test_mode=request.test_mode,
            )

            repository = self._alerts
            if request.test_mode:
                repository = self._scratch_alerts
                await repository.create_table()

            due: list[Source] = []
            for source in sources:
                if await self._is_due(source, request):
                    due.append(source)
                else:
                    result.sources.append(
                        SourceRunResult(
                            source_id=source.id,
                            result_key=source.result_key,
                            state=advance(SourceRunState.IDLE, SourceRunState.SKIPPED),
                        )
                    )

            critical, rest = order_for_run(due)
            async with self._client_factory() as client:
                for source in critical:
                    result.sources.append(
                        await self._run_source(source, client, repository, request)
                    )

                semaphore = asyncio.Semaphore(self._config.max_concurrent_sources)

                async def bounded(source: Source) -> SourceRunResult:
                    async with semaphore:
                        return await self._run_source(source, client, repository, request)

                result.sources.extend(await asyncio.gather(*(bounded(s) for s in rest)))

            duration = time.monotonic() - started
            get_metrics().pipeline_duration.observe(duration)
            logger.info(
                "Pipeline run finished",
                inserted=result.total_inserted,
                succeeded=len(result.by_state(SourceRunState.SUCCEEDED)),
                failed=len(result.by_state(SourceRunState.FAILED)),
                skipped=len(result.by_state(SourceRunState.SKIPPED)),
                duration_seconds=round(duration, 2),
            )
        return result

    async def _is_due(self, source: Source, request: PipelineRequest) -> bool:
        if request.test_mode or not self._config.respect_cooldown:
            return True
        if request.force_refresh:
            await self._cooldown.reset(source.cooldown_key)
            return True
        last_run = await self._cooldown.get_last_run(source.cooldown_key)
        due = is_due(source, last_run)
        if not due:
            logger.debug("Source in cooldown", source_id=source.id, last_run=str(last_run))
        return due

    # ── Per source ──────────────────────────────────────────────

    async def _run_source(
        self,
        source: Source,
        client: HTTPClient,
        repository: AlertRepository,
        request: PipelineRequest,
    ) -> SourceRunResult:
        state = advance(SourceRunState.IDLE, SourceRunState.DUE)
        state = advance(state, SourceRunState.RUNNING)
        run = SourceRunResult(source_id=source.id, result_key=source.result_key, state=state)

        with structlog.contextvars.bound_contextvars(source_id=source.id):
            try:
                await self._fetch_and_store(source, client, repository, request, run)
            except CONNECTION_ERRORS:
                raise
            except Exception as e:
                logger.exception("Source run failed", error=str(e))
                run.state = SourceRunState.FAILED
                run.error = f"{type(e).__name__}: {e}"

            if not request.test_mode:
                await self._record_run(source, run)
        return run

    async def _fetch_and_store(
        self,
        source: Source,
        client: HTTPClient,
        repository: AlertRepository,
        request: PipelineRequest,
        run: SourceRunResult,
    ) -> None:
        metrics = get_metrics()
        started = time.monotonic()
        outcome = await create_connector(source, client, self._settings).fetch()
        latency = time.monotonic() - started
        run.origin = outcome.origin.value

        if isinstance(outcome, Err):
            error = outcome.error
            metrics.record_fetch(source.id, "error", outcome.origin.value, latency)
            if isinstance(error, ParseError):
                metrics.record_parse_error(source.id, error.parser)
            run.state = advance(run.state, SourceRunState.FAILED)
            run.error = f"{error.error_type}: {error}"
            if not request.test_mode:
                await self._dispatcher.notify_failure(
                    error,
                    function_name=f"fetch_{source.type}",
                    details={"source": source.id},
                )
            return

        if isinstance(outcome, Empty):
            metrics.record_fetch(source.id, "empty", outcome.origin.value, latency)
            run.state = advance(run.state, SourceRunState.SUCCEEDED)
            run.warnings.append(outcome.reason)
            if not request.test_mode:
                await self._dispatcher.notify_failure(
                    NoResultsError(
                        outcome.reason,
                        endpoint=source.endpoints[0] if source.endpoints else None,
                    ),
                    function_name=f"fetch_{source.type}",
                    details={"source": source.id},
                    route=False,
                )
            return

        metrics.record_fetch(
            source.id, "ok", outcome.origin.value, latency, items=len(outcome.items)
        )
        run.fetched = len(outcome.items)
        run.warnings.extend(outcome.warnings)
        for error in outcome.errors:
            if isinstance(error, ParseError):
                metrics.record_parse_error(source.id, error.parser)
            if not request.test_mode:
                await self._dispatcher.notify_failure(
                    error,
                    function_name=f"fetch_{source.type}",
                    details={"source": source.id},
                    route=not isinstance(error, NoResultsError),
                )
        inserted = await self._store_items(
            source, outcome.items, outcome.origin, repository, run
        )
        metrics.record_alerts(source.id, inserted, run.duplicates)
        run.state = advance(run.state, SourceRunState.SUCCEEDED)
        logger.info(
            "Source processed",
            origin=run.origin,
            fetched=run.fetched,
            inserted=run.inserted,
            duplicates=run.duplicates,
        )

    async def _store_items(
        self,
        source: Source,
        items: list[RawItem],
        origin: FetchOrigin,
        repository: AlertRepository,
        run: SourceRunResult,
    ) -> dict[str, int]:
        """Normalize, classify, dedup and insert items in feed order."""
        deduplicator = Deduplicator(repository, self._dedup_config)
        match_url = bool(source.metadata.get("dedup_by_url", source.type == "scraper"))
        by_urgency: Counter[str] = Counter()

        for item in items[: self._config.max_items_per_source]:
            try:
                alert = normalize(item, source, origin)
            except ValueError as e:
                logger.warning("Skipping item", reason=str(e))
                continue

            self._classifier.classify(alert, source)
            identifiers = extract_identifiers(f"{alert.title} {alert.description}")
            if identifiers:
                alert.full_content["identifiers"] = identifiers

            if await deduplicator.is_duplicate(alert, match_url=match_url):
                run.duplicates += 1
                continue

            alert.summary = await self._summarizer.summarize(alert.title, alert.description)
            if await repository.insert(alert):
                run.inserted += 1
                by_urgency[alert.urgency.value] += 1
            else:
                run.duplicates += 1

        return dict(by_urgency)

    async def _record_run(self, source: Source, run: SourceRunResult) -> None:
        """Cooldown, registry status, freshness and health notices."""
        try:
            await self._cooldown.set_last_run(source.cooldown_key)

            if run.state == SourceRunState.FAILED:
                await self._sources.record_error(source, run.error or "unknown error")
                fetch_status = "error"
            else:
                await self._sources.record_success(source)
                fetch_status = "success" if run.fetched else "empty"

            _, transition = await self._monitor.record_run(
                source.name,
                fetch_status=fetch_status,
                records_fetched=run.fetched,
                error=run.error,
                source_id=source.id,
            )
            if transition is not None:
                await self._dispatcher.notify_state_change(transition)
                if transition.recovered:
                    await self._dispatcher.notify_success(source.name, run.fetched)
        except CONNECTION_ERRORS:
            raise
        except Exception as e:
            logger.exception("Failed to record source run", error=str(e))
