"""Persistence for scrape jobs, their products and log streams.

Every method opens its own short-lived session so that concurrently running
jobs never share a session.
"""

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scrapeforge.core.exceptions import NotFoundError
from scrapeforge.models.base import new_id
from scrapeforge.models.product import Product
from scrapeforge.models.scrape_job import JobStatus, ScrapeJob
from scrapeforge.models.scraping_config import StoredScrapingConfig
from scrapeforge.models.scraping_log import ScrapingLog
from scrapeforge.scrapers.base import ScrapedProduct

logger = structlog.get_logger(__name__)

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


class JobRepository:
    """Async data access for the job orchestrator and the export service."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository.

        Args:
            session_factory: Factory producing AsyncSession instances
        """
        self.session_factory = session_factory
        self.logger = logger.bind(service="job_repository")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(
        self,
        platform: str,
        config: Dict[str, Any],
        config_id: Optional[str] = None,
    ) -> ScrapeJob:
        """Persist a new queued job."""
        async with self.session_factory() as session:
            job = ScrapeJob(
                platform=platform,
                status=JobStatus.QUEUED,
                progress=0,
                config=config,
                config_id=config_id,
            )
            session.add(job)
            await session.commit()
            await session.refresh(job)

        self.logger.info("job_created", job_id=job.id, platform=platform)
        return job

    async def get_job(self, job_id: str) -> Optional[ScrapeJob]:
        async with self.session_factory() as session:
            return await session.get(ScrapeJob, job_id)

    async def update_job(self, job_id: str, **fields: Any) -> None:
        """Set columns on a job.

        Raises:
            NotFoundError: If no job has this id
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(ScrapeJob).where(ScrapeJob.id == job_id).values(**fields)
            )
            await session.commit()

        if result.rowcount == 0:
            raise NotFoundError("ScrapeJob", job_id)

    async def list_recent_jobs(self, limit: int = 20) -> List[ScrapeJob]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScrapeJob).order_by(ScrapeJob.created_at.desc()).limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def add_products(
        self,
        job_id: str,
        platform: str,
        products: Sequence[ScrapedProduct],
    ) -> int:
        """Insert a batch of products, ignoring ones already stored for the job.

        Returns:
            Number of rows actually inserted
        """
        if not products:
            return 0

        now = datetime.now(timezone.utc)
        rows = [self._product_row(job_id, platform, product, now) for product in products]

        async with self.session_factory() as session:
            dialect = session.get_bind().dialect.name
            insert_fn = _UPSERT_INSERTS.get(dialect)

            if insert_fn is not None:
                stmt = insert_fn(Product).values(rows).on_conflict_do_nothing(
                    index_elements=["job_id", "product_id"]
                )
                result = await session.execute(stmt)
                inserted = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(rows)
            else:
                inserted = await self._insert_missing(session, job_id, rows)

            await session.commit()

        self.logger.debug(
            "products_saved",
            job_id=job_id,
            batch_size=len(rows),
            inserted=inserted,
        )
        return inserted

    async def _insert_missing(self, session: AsyncSession, job_id: str, rows: List[dict]) -> int:
        existing = await session.execute(
            select(Product.product_id).where(
                Product.job_id == job_id,
                Product.product_id.in_([row["product_id"] for row in rows]),
            )
        )
        seen = set(existing.scalars().all())
        inserted = 0
        for row in rows:
            if row["product_id"] in seen:
                continue
            seen.add(row["product_id"])
            session.add(Product(**row))
            inserted += 1
        return inserted

    @staticmethod
    def _product_row(
        job_id: str,
        platform: str,
        product: ScrapedProduct,
        scraped_at: datetime,
    ) -> dict:
        row = asdict(product)
        row["images_urls"] = list(product.images_urls)
        row.update(id=new_id(), job_id=job_id, platform=platform, date_scraped=scraped_at)
        return row

    async def list_products(self, job_id: str) -> List[Product]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Product)
                .where(Product.job_id == job_id)
                .order_by(Product.date_scraped, Product.product_id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def add_log(
        self,
        job_id: str,
        level: str,
        message: str,
        details: Optional[dict] = None,
    ) -> ScrapingLog:
        async with self.session_factory() as session:
            entry = ScrapingLog(job_id=job_id, level=level, message=message, details=details)
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
            return entry

    async def get_job_logs(self, job_id: str, limit: Optional[int] = None) -> List[ScrapingLog]:
        stmt = (
            select(ScrapingLog)
            .where(ScrapingLog.job_id == job_id)
            .order_by(ScrapingLog.created_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Stored configurations
    # ------------------------------------------------------------------

    async def save_config(
        self,
        name: str,
        platform: str,
        config: Dict[str, Any],
        description: Optional[str] = None,
    ) -> StoredScrapingConfig:
        async with self.session_factory() as session:
            stored = StoredScrapingConfig(
                name=name,
                platform=platform,
                description=description,
                config=config,
            )
            session.add(stored)
            await session.commit()
            await session.refresh(stored)
            return stored

    async def get_config(self, config_id: str) -> Optional[StoredScrapingConfig]:
        async with self.session_factory() as session:
            return await session.get(StoredScrapingConfig, config_id)
