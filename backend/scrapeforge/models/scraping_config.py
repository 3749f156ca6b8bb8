"""Named scraping configurations stored for reuse."""

from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from scrapeforge.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin
from scrapeforge.schemas.scraping import ScrapingConfig


class StoredScrapingConfig(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A ScrapingConfig saved under a name for a platform."""

    __tablename__ = "scraping_configs"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # camelCase keys, as produced by ScrapingConfig.to_storage()
    config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    def to_scraping_config(self) -> ScrapingConfig:
        return ScrapingConfig.model_validate(self.config or {})

    def __repr__(self) -> str:
        return f"<StoredScrapingConfig(id={self.id}, name='{self.name}', platform='{self.platform}')>"
