import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError

from ..models.stats_model import ElectionStats
from .api import ApiClient
from .errors import ApiError
from .settings import SettingsService

logger = logging.getLogger(__name__)

NOT_STARTED = "not-started"
ACTIVE = "active"
ENDED = "ended"


class ElectionStatsService:
    """Dashboard statistics plus election status derived from settings."""

    def __init__(self, api: ApiClient, settings: SettingsService):
        self.api = api
        self.settings_service = settings
        self.stats = ElectionStats()
        self.loading = False
        self.error: Optional[str] = None

    async def update_stats(self) -> ElectionStats:
        self.loading = True
        try:
            self.stats = ElectionStats(**await self.api.get("/api/elections/stats", auth=True))
            self.error = None
        except ApiError as exc:
            logger.error(f"Error fetching election stats: {exc.message}")
            self.error = exc.message
        except (ValidationError, TypeError) as exc:
            logger.error(f"Malformed election stats payload: {exc}")
            self.error = "Invalid statistics received from server"
        finally:
            self.loading = False
        return self.stats

    def election_status(self, now: Optional[datetime] = None) -> str:
        settings = self.settings_service.settings
        window = settings.voting_window() if settings else None
        if window is None:
            return NOT_STARTED
        now = now or datetime.now(timezone.utc)
        start, end = window
        if now < start:
            return NOT_STARTED
        if now >= end:
            return ENDED
        return ACTIVE

    def time_remaining(self, now: Optional[datetime] = None) -> timedelta:
        settings = self.settings_service.settings
        window = settings.voting_window() if settings else None
        if window is None:
            return timedelta(0)
        now = now or datetime.now(timezone.utc)
        return max(window[1] - now, timedelta(0))
