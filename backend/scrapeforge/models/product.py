"""Product records extracted by scrape jobs."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scrapeforge.models.base import Base, JSONType, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from scrapeforge.models.scrape_job import ScrapeJob


class Product(UUIDPrimaryKeyMixin, Base):
    """Product extracted during a job.

    Unique per (job_id, product_id) so a batch that is inserted twice leaves
    one row per product.
    """

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("job_id", "product_id", name="uq_product_job_product_id"),
    )

    job_id: Mapped[str] = mapped_column(
        ForeignKey("scrape_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Identity
    product_id: Mapped[str] = mapped_column(String(200), nullable=False)
    product_url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    main_category: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sub_category: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Pricing
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    # Shipping
    shipping_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    shipping_time_estimate: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Vendor and ratings
    vendor_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    vendor_rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2), nullable=True)
    product_rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2), nullable=True)
    review_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    images_urls: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    variant_options: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stock_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    minimum_order_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)
    dimensions: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    platform_source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    date_scraped: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    job: Mapped["ScrapeJob"] = relationship(back_populates="products")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, product_id='{self.product_id}', title='{self.title[:50]}...')>"
