"""
Exceptions raised by the MarketOps service layer.
"""

from typing import List, Optional


class MarketOpsError(Exception):
    """Base class for service-level failures."""


class StoreError(MarketOpsError):
    """Raised when a Supabase query fails."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Store query on '{table}' failed: {message}")


class WebhookError(MarketOpsError):
    """Raised when a generation webhook rejects a request or is unreachable."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None, body: str = ""):
        self.url = url
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            super().__init__(f"Webhook {url} failed with status {status_code}: {message}")
        else:
            super().__init__(f"Webhook {url} failed: {message}")


class BriefValidationError(MarketOpsError):
    """Raised when a brief is saved with required fields missing or malformed."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Brief is incomplete: {', '.join(self.missing)}")


class AvatarDataNotFound(MarketOpsError):
    """Raised when no analysis output exists for an avatar."""


class AdRequestError(MarketOpsError):
    """Raised when an ad creation request is incomplete."""
