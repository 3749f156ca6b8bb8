"""Custom exception classes for the application."""

from typing import List, Optional


class ScrapeForgeError(Exception):
    """Base exception for all ScrapeForge errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(ScrapeForgeError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class NavigationError(ScrapeForgeError):
    """Raised for a single failed page load (bad status, timeout, network).

    Transient: the engine retries it with backoff.
    """

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(reason)


class InvalidConfigError(ScrapeForgeError):
    """Raised when a scraping configuration fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid config: {', '.join(self.errors)}")


class JobAlreadyRunningError(ScrapeForgeError):
    """Raised when starting a job id that is already registered as running."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is already running")


class JobNotRunningError(ScrapeForgeError):
    """Raised when cancelling a job id that is not registered as running."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is not running")
