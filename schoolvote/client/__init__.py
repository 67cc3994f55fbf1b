"""Voter and administrator workflows over the election REST API."""
from .activity_logs import ActivityLogViewer, LogFilters, Notification
from .api import ApiClient
from .ballot import BallotConfirmation, BallotWorkflow
from .election import ElectionStatsService
from .errors import ApiError, ClientError, IncompleteBallotError
from .session import UserSession
from .settings import SettingsService
from .storage import LocalStore

__all__ = [
    "ActivityLogViewer",
    "ApiClient",
    "ApiError",
    "BallotConfirmation",
    "BallotWorkflow",
    "ClientError",
    "ElectionStatsService",
    "IncompleteBallotError",
    "LocalStore",
    "LogFilters",
    "Notification",
    "SettingsService",
    "UserSession",
]
