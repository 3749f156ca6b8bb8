"""Per-job log stream."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scrapeforge.models.base import Base, JSONType, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from scrapeforge.models.scrape_job import ScrapeJob


class ScrapingLog(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "scraping_logs"

    job_id: Mapped[str] = mapped_column(
        ForeignKey("scrape_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Level: 'debug', 'info', 'warning', 'error'"
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    job: Mapped["ScrapeJob"] = relationship(back_populates="logs")

    def __repr__(self) -> str:
        return f"<ScrapingLog(job_id={self.job_id}, level='{self.level}', message='{self.message[:50]}')>"
