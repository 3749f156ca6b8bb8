"""Services module for job orchestration, persistence and export.

Services coordinate scraper runs, record their progress and results, and
publish job events to subscribers.
"""

from scrapeforge.services.notifications import JobEvent, NotificationBus
from scrapeforge.services.job_repository import JobRepository
from scrapeforge.services.job_manager import ActiveJobRegistry, JobManager, get_job_manager
from scrapeforge.services.export_service import build_products_csv, export_job_csv

__all__ = [
    "JobEvent",
    "NotificationBus",
    "JobRepository",
    "ActiveJobRegistry",
    "JobManager",
    "get_job_manager",
    "build_products_csv",
    "export_job_csv",
]
