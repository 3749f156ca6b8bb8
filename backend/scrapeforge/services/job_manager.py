"""Job orchestration: starts and cancels scraper runs and records their progress.

The JobManager owns the registry of running jobs. Each job runs its own
ScraperEngine; engine progress and log lines are persisted through the
JobRepository and republished on the NotificationBus.
"""

import asyncio
import threading
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Set, Union

import structlog
from pydantic import ValidationError

from scrapeforge.config import settings
from scrapeforge.core.exceptions import (
    InvalidConfigError,
    JobAlreadyRunningError,
    JobNotRunningError,
    NotFoundError,
)
from scrapeforge.models.scrape_job import JobStatus
from scrapeforge.models.scraping_log import ScrapingLog
from scrapeforge.schemas.scraping import JobStatusResponse, ScrapingConfig
from scrapeforge.scrapers.base import (
    CancellationToken,
    ScrapedProduct,
    ScraperCallbacks,
    ScrapingResult,
)
from scrapeforge.scrapers.factory import ScraperFactory, get_scraper_factory
from scrapeforge.services.job_repository import JobRepository
from scrapeforge.services.notifications import JobEvent, NotificationBus

logger = structlog.get_logger(__name__)

ConfigInput = Union[ScrapingConfig, Dict[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActiveJobRegistry:
    """Thread-safe mapping of running job ids to their cancellation tokens.

    Only the JobManager inserts and removes entries.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, CancellationToken] = {}

    def register(self, job_id: str, token: CancellationToken) -> None:
        """Raises JobAlreadyRunningError if ``job_id`` is already registered."""
        with self._lock:
            if job_id in self._jobs:
                raise JobAlreadyRunningError(job_id)
            self._jobs[job_id] = token

    def remove(self, job_id: str, token: Optional[CancellationToken] = None) -> Optional[CancellationToken]:
        """Remove and return the entry; with ``token`` given, only if it matches."""
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None or (token is not None and current is not token):
                return None
            return self._jobs.pop(job_id)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._jobs)


class JobManager:
    """Runs scrape jobs concurrently, at most ``max_concurrent_jobs`` at a time."""

    def __init__(
        self,
        repository: JobRepository,
        bus: Optional[NotificationBus] = None,
        factory: Optional[ScraperFactory] = None,
        max_concurrent_jobs: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        """Initialize job manager.

        Args:
            repository: Persistence for jobs, products and logs
            bus: Bus that job events are published on
            factory: Builds engines and validates configurations
            max_concurrent_jobs: Engines allowed to run at once
            batch_size: Products inserted per batch
        """
        self.repository = repository
        self.bus = bus or NotificationBus()
        self.factory = factory or get_scraper_factory()
        self.max_concurrent_jobs = max_concurrent_jobs or settings.MAX_CONCURRENT_JOBS
        self.batch_size = batch_size or settings.PRODUCT_BATCH_SIZE
        self.registry = ActiveJobRegistry()
        self._slots = asyncio.Semaphore(self.max_concurrent_jobs)
        self._tasks: Set["asyncio.Task[ScrapingResult]"] = set()
        self.logger = logger.bind(service="job_manager")

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    async def create_job(
        self,
        platform: str,
        config: Optional[ConfigInput] = None,
        config_id: Optional[str] = None,
    ) -> str:
        """Persist a queued job and announce it.

        The configuration comes from the stored config ``config_id`` when
        given, else from ``config``, else the platform default.

        Raises:
            NotFoundError: If ``config_id`` does not exist
            InvalidConfigError: If the configuration cannot be parsed
        """
        if config_id is not None:
            stored = await self.repository.get_config(config_id)
            if stored is None:
                raise NotFoundError("ScrapingConfig", config_id)
            scraping_config = self._coerce_config(stored.config)
        elif config is not None:
            scraping_config = self._coerce_config(config)
        else:
            scraping_config = self.factory.create_default_config(platform)

        job = await self.repository.create_job(
            platform, scraping_config.to_storage(), config_id=config_id
        )
        await self.bus.publish(JobEvent.CREATED, {"jobId": job.id, "platform": platform})
        return job.id

    async def start_job(self, job_id: str, platform: str, config: ConfigInput) -> ScrapingResult:
        """Run a job to completion.

        Raises:
            JobAlreadyRunningError: If ``job_id`` is already running
            InvalidConfigError: If the configuration fails validation
        """
        scraping_config = self._coerce_config(config)

        if job_id in self.registry:
            raise JobAlreadyRunningError(job_id)

        validation = self.factory.validate_config(scraping_config)
        if not validation.valid:
            raise InvalidConfigError(validation.errors)

        token = CancellationToken()
        self.registry.register(job_id, token)
        log = self.logger.bind(job_id=job_id, platform=platform)

        try:
            async with self._slots:
                if token.cancelled:
                    log.info("job_cancelled_before_start")
                    return ScrapingResult(success=False, errors=["Job cancelled before start"])
                return await self._run(job_id, platform, scraping_config, token)

        except Exception as e:
            message = str(e) or e.__class__.__name__
            self.registry.remove(job_id, token)
            if token.cancelled:
                log.warning("cancelled_job_errored", error=message)
                raise

            log.error("job_failed", error=message, exc_info=True)
            try:
                await self.repository.update_job(
                    job_id,
                    status=JobStatus.FAILED,
                    error=message,
                    completed_at=_utcnow(),
                )
            except Exception as persist_error:
                log.error("job_failure_not_persisted", error=str(persist_error))
            await self._log(job_id, "error", f"Job failed: {message}")
            await self.bus.publish(JobEvent.COMPLETE, {"jobId": job_id, "success": False})
            raise

        finally:
            self.registry.remove(job_id, token)

    async def _run(
        self,
        job_id: str,
        platform: str,
        config: ScrapingConfig,
        token: CancellationToken,
    ) -> ScrapingResult:
        await self.repository.update_job(
            job_id, status=JobStatus.RUNNING, started_at=_utcnow(), progress=0
        )
        await self.bus.publish(
            JobEvent.UPDATE, {"jobId": job_id, "status": JobStatus.RUNNING, "progress": 0}
        )
        await self._log(job_id, "info", f"Starting scraping job for platform: {platform}")

        callbacks = ScraperCallbacks(
            on_progress=partial(self._handle_progress, job_id),
            on_log=partial(self._handle_log, job_id),
        )
        engine = self.factory.create(platform, config, callbacks, token)
        result = await engine.run()

        await self._save_products(job_id, platform, result.products)

        counters = {
            "products_scraped": len(result.products),
            "products_failed": len(result.errors),
            "captcha_events": result.captcha_events,
        }

        # A cancel that already took the registry entry owns the terminal status.
        self.registry.remove(job_id, token)
        if token.cancelled:
            await self.repository.update_job(job_id, **counters)
            await self._log(
                job_id,
                "info",
                f"Job cancelled. Kept {len(result.products)} products scraped before cancellation",
            )
            return result

        status = JobStatus.COMPLETED if result.success else JobStatus.FAILED
        await self.repository.update_job(
            job_id,
            status=status,
            progress=100,
            error=self._terminal_error(result),
            completed_at=_utcnow(),
            **counters,
        )
        await self._log(
            job_id,
            "info",
            f"Job completed. Success: {result.success}, Products: {len(result.products)}",
        )
        await self.bus.publish(JobEvent.COMPLETE, {"jobId": job_id, "success": result.success})
        return result

    @staticmethod
    def _terminal_error(result: ScrapingResult) -> Optional[str]:
        if result.success:
            return None
        for error in result.errors:
            if error.startswith("Fatal error"):
                return error
        return "No products were extracted"

    def launch_job(self, job_id: str, platform: str, config: ConfigInput) -> "asyncio.Task[ScrapingResult]":
        """Schedule ``start_job`` in the background and return its task.

        Conflicts and invalid configurations are raised here, before anything
        is scheduled.
        """
        scraping_config = self._coerce_config(config)
        if job_id in self.registry:
            raise JobAlreadyRunningError(job_id)
        validation = self.factory.validate_config(scraping_config)
        if not validation.valid:
            raise InvalidConfigError(validation.errors)

        task = asyncio.create_task(
            self.start_job(job_id, platform, scraping_config), name=f"scrape-job-{job_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: "asyncio.Task[ScrapingResult]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.warning("background_job_failed", task=task.get_name(), error=str(error))

    async def cancel_job(self, job_id: str) -> None:
        """Stop a running job at the engine's next checkpoint.

        Raises:
            JobNotRunningError: If ``job_id`` is not running
        """
        token = self.registry.remove(job_id)
        if token is None:
            raise JobNotRunningError(job_id)
        token.cancel()

        await self.repository.update_job(
            job_id, status=JobStatus.CANCELLED, completed_at=_utcnow()
        )
        await self._log(job_id, "info", "Job cancelled by user")
        await self.bus.publish(JobEvent.CANCELLED, {"jobId": job_id})
        self.logger.info("job_cancelled", job_id=job_id)

    def is_job_running(self, job_id: str) -> bool:
        return job_id in self.registry

    def list_active_jobs(self) -> List[str]:
        return self.registry.ids()

    # ------------------------------------------------------------------
    # Point queries
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> JobStatusResponse:
        job = await self.repository.get_job(job_id)
        if job is None:
            raise NotFoundError("ScrapeJob", job_id)
        return JobStatusResponse.model_validate(job)

    async def list_recent_jobs(self, limit: int = 20) -> List[JobStatusResponse]:
        jobs = await self.repository.list_recent_jobs(limit)
        return [JobStatusResponse.model_validate(job) for job in jobs]

    async def get_job_logs(self, job_id: str, limit: Optional[int] = None) -> List[ScrapingLog]:
        return await self.repository.get_job_logs(job_id, limit)

    # ------------------------------------------------------------------
    # Engine callbacks
    # ------------------------------------------------------------------

    async def _handle_progress(self, job_id: str, progress: int, products_scraped: int) -> None:
        try:
            await self.repository.update_job(
                job_id, progress=progress, products_scraped=products_scraped
            )
        except Exception as e:
            self.logger.error("job_progress_not_persisted", job_id=job_id, error=str(e))

        await self.bus.publish(
            JobEvent.UPDATE,
            {"jobId": job_id, "progress": progress, "productsScraped": products_scraped},
        )

    async def _handle_log(
        self,
        job_id: str,
        level: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        try:
            await self.repository.add_log(job_id, level, message, details)
        except Exception as e:
            self.logger.error("job_log_not_persisted", job_id=job_id, error=str(e))

        await self.bus.publish(
            JobEvent.LOG,
            {
                "jobId": job_id,
                "level": level,
                "message": message,
                "details": details,
                "timestamp": _utcnow().isoformat(),
            },
        )

    async def _log(self, job_id: str, level: str, message: str) -> None:
        await self._handle_log(job_id, level, message)

    async def _save_products(
        self, job_id: str, platform: str, products: Sequence[ScrapedProduct]
    ) -> None:
        total = len(products)
        for start in range(0, total, self.batch_size):
            batch = products[start:start + self.batch_size]
            await self.repository.add_products(job_id, platform, batch)
            await self._log(
                job_id, "info", f"Saved {min(start + self.batch_size, total)}/{total} products"
            )

    @staticmethod
    def _coerce_config(config: ConfigInput) -> ScrapingConfig:
        if isinstance(config, ScrapingConfig):
            return config
        try:
            return ScrapingConfig.model_validate(config or {})
        except ValidationError as exc:
            raise InvalidConfigError(
                [
                    f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
                    for e in exc.errors()
                ]
            ) from exc


_job_manager: Optional[JobManager] = None


def get_job_manager() -> JobManager:
    """Get the process-wide JobManager bound to the configured database."""
    global _job_manager
    if _job_manager is None:
        from scrapeforge.db.session import async_session_factory

        _job_manager = JobManager(JobRepository(async_session_factory))
    return _job_manager
