import logging
from typing import Optional

from pydantic import ValidationError

from ..models.settings_model import ElectionSettings
from .api import ApiClient
from .errors import ApiError

logger = logging.getLogger(__name__)


class SettingsService:
    """Election configuration, fetched once and then served from cache."""

    def __init__(self, api: ApiClient):
        self.api = api
        self._settings: Optional[ElectionSettings] = None
        self.error: Optional[str] = None

    @property
    def settings(self) -> Optional[ElectionSettings]:
        return self._settings

    async def preload(self, refresh: bool = False) -> Optional[ElectionSettings]:
        """Fetch settings unless cached; on failure keep the cached copy and set error."""
        if self._settings is not None and not refresh:
            return self._settings
        try:
            self._settings = ElectionSettings(**await self.api.get("/api/settings"))
            self.error = None
        except ApiError as exc:
            logger.error(f"Error fetching settings: {exc.message}")
            self.error = exc.message
        except (ValidationError, TypeError) as exc:
            logger.error(f"Malformed settings payload: {exc}")
            self.error = "Invalid settings received from server"
        return self._settings
