"""Scrape job tracking."""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scrapeforge.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from scrapeforge.models.product import Product
    from scrapeforge.models.scraping_config import StoredScrapingConfig
    from scrapeforge.models.scraping_log import ScrapingLog


class JobStatus:
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    TERMINAL = frozenset([COMPLETED, FAILED, CANCELLED])


class ScrapeJob(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One scraping run of a platform under a configuration.

    Created queued, moved to running by the JobManager and finished in one of
    the terminal states.
    """

    __tablename__ = "scrape_jobs"

    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.QUEUED,
        index=True,
        comment="Status: 'queued', 'running', 'completed', 'failed', 'cancelled'"
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Counters
    products_scraped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    captcha_events: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Snapshot of the configuration the job runs with, camelCase keys
    config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    config_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("scraping_configs.id", ondelete="SET NULL"),
        nullable=True,
    )

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timing
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    products: Mapped[List["Product"]] = relationship(
        back_populates="job", cascade="all, delete-orphan"
    )
    logs: Mapped[List["ScrapingLog"]] = relationship(
        back_populates="job", cascade="all, delete-orphan"
    )
    stored_config: Mapped[Optional["StoredScrapingConfig"]] = relationship()

    def __repr__(self) -> str:
        return f"<ScrapeJob(id={self.id}, platform='{self.platform}', status='{self.status}')>"
