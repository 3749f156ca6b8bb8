"""Pipe-delimited CSV export of a job's products."""

import csv
import io
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

import structlog

from scrapeforge.core.exceptions import NotFoundError
from scrapeforge.models.product import Product
from scrapeforge.services.job_repository import JobRepository

logger = structlog.get_logger(__name__)


BOM = "\ufeff"
DELIMITER = "|"

CSV_COLUMNS = [
    "product_id",
    "product_url",
    "title",
    "description",
    "main_category",
    "sub_category",
    "price",
    "original_price",
    "currency",
    "shipping_cost",
    "shipping_time_estimate",
    "vendor_name",
    "vendor_rating",
    "product_rating",
    "review_count",
    "images_urls",
    "variant_options",
    "stock_status",
    "minimum_order_quantity",
    "weight",
    "dimensions",
    "sku",
    "date_scraped",
    "platform_source",
]


def clean_field(value: Any) -> str:
    """Render one value: empty for None, delimiter and line breaks become spaces."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        text = value.isoformat()
    elif isinstance(value, (list, tuple)):
        text = json.dumps(list(value)) if value else ""
    else:
        text = str(value)
    return text.replace(DELIMITER, " ").replace("\r", " ").replace("\n", " ")


def product_row(product: Product) -> List[str]:
    return [clean_field(getattr(product, column, None)) for column in CSV_COLUMNS]


def build_products_csv(products: Iterable[Product]) -> str:
    """Full export text: BOM, header row, one row per product."""
    output = io.StringIO()
    output.write(BOM)
    # Fields are already free of delimiters and line breaks, so nothing is quoted.
    writer = csv.writer(
        output,
        delimiter=DELIMITER,
        lineterminator="\n",
        quoting=csv.QUOTE_NONE,
        quotechar=None,
    )
    writer.writerow(CSV_COLUMNS)
    for product in products:
        writer.writerow(product_row(product))
    return output.getvalue()


def export_filename(job_id: str, when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.now()).strftime("%Y%m%d%H%M%S")
    return f"scrapeforge-export-{job_id}-{stamp}.csv"


async def export_job_csv(
    repository: JobRepository,
    job_id: str,
    destination: Optional[Union[str, Path]] = None,
) -> str:
    """Build the CSV for a job, writing it to ``destination`` when given.

    Raises:
        NotFoundError: If the job does not exist
    """
    job = await repository.get_job(job_id)
    if job is None:
        raise NotFoundError("ScrapeJob", job_id)

    products = await repository.list_products(job_id)
    content = build_products_csv(products)

    if destination is not None:
        path = Path(destination)
        path.write_text(content, encoding="utf-8")
        logger.info("job_exported", job_id=job_id, products=len(products), path=str(path))

    return content
