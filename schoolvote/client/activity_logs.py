import html
import logging
from dataclasses import dataclass, fields, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..config import NOTIFICATION_SECONDS
from ..models.log_model import ActivityLog
from .api import ApiClient
from .errors import ApiError
from .session import UserSession

logger = logging.getLogger(__name__)

NO_VIEW_PERMISSION = "You don't have permission to view activity logs."
CLEAR_CONFIRMATION = "Are you sure you want to clear all activity logs? This action cannot be undone."
INVALID_LOG_DATA = "Failed to fetch logs: the server sent invalid log data."
CSV_HEADER = "Time,User,Role,Action,Entity,Details,IP Address"

PRINT_STYLES = """
    <style>
      body { font-family: Arial, sans-serif; margin: 0; padding: 20px; }
      h1 { text-align: center; color: #4338ca; margin-bottom: 20px; }
      .filter-info { text-align: center; margin-bottom: 20px; color: #6b7280; }
      table { width: 100%; border-collapse: collapse; margin-bottom: 30px; }
      th { background-color: #f3f4f6; color: #374151; font-weight: bold; text-align: left; padding: 10px; }
      td { padding: 10px; border-bottom: 1px solid #e5e7eb; }
      tr:nth-child(even) { background-color: #f9fafb; }
      .footer { margin-top: 20px; text-align: center; font-size: 12px; color: #6b7280; }
    </style>"""


@dataclass(frozen=True)
class LogFilters:
    user: str = ""
    action: str = ""
    entity: str = ""
    from_date: Optional[date] = None
    to_date: Optional[date] = None

    def active(self) -> List[Tuple[str, str]]:
        return [(f.name, str(getattr(self, f.name))) for f in fields(self) if getattr(self, f.name)]


@dataclass(frozen=True)
class Notification:
    type: str  # "success" | "error"
    message: str
    expires_at: datetime

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) < self.expires_at


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def format_timestamp(ts: datetime) -> str:
    return _as_utc(ts).astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def matches_search(log: ActivityLog, term: str) -> bool:
    needle = term.lower()
    haystack = [log.action, log.entity, log.details]
    if log.user:
        haystack += [log.user.username or "", log.user.fullName or ""]
    return any(needle in value.lower() for value in haystack)


def filter_logs(logs: Iterable[ActivityLog], search_term: str = "", filters: LogFilters = LogFilters()) -> List[ActivityLog]:
    """Search, then structured filters, then newest first. Never mutates logs."""
    filtered = list(logs)
    if search_term:
        filtered = [log for log in filtered if matches_search(log, search_term)]
    if filters.user:
        filtered = [
            log for log in filtered
            if log.user and filters.user in (log.user.username, log.user.fullName)
        ]
    if filters.action:
        filtered = [log for log in filtered if log.action == filters.action]
    if filters.entity:
        filtered = [log for log in filtered if log.entity == filters.entity]
    if filters.from_date:
        start = datetime.combine(filters.from_date, time.min, tzinfo=timezone.utc)
        filtered = [log for log in filtered if _as_utc(log.timestamp) >= start]
    if filters.to_date:
        # inclusive of the whole last day
        end = datetime.combine(filters.to_date, time(23, 59, 59), tzinfo=timezone.utc)
        filtered = [log for log in filtered if _as_utc(log.timestamp) <= end]
    filtered.sort(key=lambda log: _as_utc(log.timestamp), reverse=True)
    return filtered


def _csv_field(value: Optional[str]) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def logs_to_csv(logs: Iterable[ActivityLog]) -> str:
    lines = [CSV_HEADER]
    for log in logs:
        role = log.user.role.name if log.user and log.user.role else ""
        row = [
            format_timestamp(log.timestamp),
            log.user.display_name if log.user else "Unknown",
            role,
            log.action,
            log.entity,
            log.details,
            log.ipAddress,
        ]
        lines.append(",".join(_csv_field(v) for v in row))
    return "\n".join(lines) + "\n"


def _failure(prefix: str, exc: ApiError) -> str:
    if exc.status_code and exc.status_code >= 400:
        return f"{prefix}: {exc.status_code}"
    return exc.message


class ActivityLogViewer:
    """Fetched audit trail plus the client-side search, filter and export over it."""

    def __init__(self, api: ApiClient, session: UserSession, school_name: str = "School Election"):
        self.api = api
        self.session = session
        self.school_name = school_name
        self.logs: List[ActivityLog] = []
        self.filtered_logs: List[ActivityLog] = []
        self.search_term = ""
        self.filters = LogFilters()
        self.loading = False
        self.error: Optional[str] = None
        self.notification: Optional[Notification] = None

    @property
    def can_view(self) -> bool:
        return self.session.has_permission("logs", "view")

    @property
    def can_delete(self) -> bool:
        return self.session.has_permission("logs", "delete")

    async def fetch(self) -> None:
        if not self.can_view:
            self.error = NO_VIEW_PERMISSION
            return
        self.loading = True
        self.error = None
        try:
            data = await self.api.get("/api/logs", auth=True)
            self.logs = [ActivityLog.model_validate(entry) for entry in data or []]
            self.apply_filters()
        except ApiError as exc:
            logger.error(f"Error fetching activity logs: {exc.message}")
            self.error = _failure("Failed to fetch logs", exc)
        except ValidationError as exc:
            logger.error(f"Malformed activity log payload: {exc}")
            self.error = INVALID_LOG_DATA
        finally:
            self.loading = False

    def apply_filters(self) -> List[ActivityLog]:
        self.filtered_logs = filter_logs(self.logs, self.search_term, self.filters)
        return self.filtered_logs

    def set_search(self, term: str) -> List[ActivityLog]:
        self.search_term = term
        return self.apply_filters()

    def set_filter(self, name: str, value) -> List[ActivityLog]:
        if name in ("from_date", "to_date") and isinstance(value, str):
            value = date.fromisoformat(value) if value else None
        self.filters = replace(self.filters, **{name: value})
        return self.apply_filters()

    def clear_filters(self) -> List[ActivityLog]:
        self.filters = LogFilters()
        self.search_term = ""
        return self.apply_filters()

    def unique_users(self) -> List[str]:
        seen: List[str] = []
        for log in self.logs:
            name = log.user and (log.user.fullName or log.user.username)
            if name and name not in seen:
                seen.append(name)
        return seen

    def unique_actions(self) -> List[str]:
        return list(dict.fromkeys(log.action for log in self.logs))

    def unique_entities(self) -> List[str]:
        return list(dict.fromkeys(log.entity for log in self.logs))

    def export_csv(self, today: Optional[date] = None) -> Tuple[str, str]:
        """(file name, CSV text) for the currently filtered logs."""
        today = today or datetime.now(timezone.utc).date()
        return f"activity_logs_{today.isoformat()}.csv", logs_to_csv(self.filtered_logs)

    def print_document(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        esc = html.escape
        school = esc(self.school_name)

        info = []
        active = self.filters.active()
        if active:
            info.append("<p>Filtered by: " + " | ".join(f"{esc(k)}: {esc(v)}" for k, v in active) + "</p>")
        if self.search_term:
            info.append(f'<p>Search term: "{esc(self.search_term)}"</p>')
        info.append(f"<p>Showing {len(self.filtered_logs)} of {len(self.logs)} logs</p>")

        rows = []
        for log in self.filtered_logs:
            user = log.user.display_name if log.user else "Unknown"
            if log.user and log.user.role:
                user += f" ({log.user.role.name})"
            cells = [format_timestamp(log.timestamp), user, log.action, log.entity, log.details, log.ipAddress or ""]
            rows.append("<tr>" + "".join(f"<td>{esc(c)}</td>" for c in cells) + "</tr>")

        return f"""<!DOCTYPE html>
<html>
  <head>
    <title>Activity Logs - {school}</title>{PRINT_STYLES}
  </head>
  <body>
    <h1>{school} - Activity Logs</h1>
    <div class="filter-info">
      {"".join(info)}
    </div>
    <table>
      <thead>
        <tr><th>Time</th><th>User</th><th>Action</th><th>Entity</th><th>Details</th><th>IP Address</th></tr>
      </thead>
      <tbody>
        {"".join(rows)}
      </tbody>
    </table>
    <div class="footer">
      <p>Printed on {format_timestamp(now)}</p>
      <p>{school} - Elections {now.year}</p>
    </div>
  </body>
</html>
"""

    async def clear_all(self, confirm: Callable[[str], bool], now: Optional[datetime] = None) -> Optional[Notification]:
        """Delete every log on the server once confirm() agrees; local logs survive a failure."""
        if not self.can_delete:
            return None
        if not confirm(CLEAR_CONFIRMATION):
            return None

        expires = (now or datetime.now(timezone.utc)) + timedelta(seconds=NOTIFICATION_SECONDS)
        self.loading = True
        try:
            await self.api.delete("/api/logs/clear", auth=True)
        except ApiError as exc:
            logger.error(f"Error clearing logs: {exc.message}")
            self.notification = Notification("error", _failure("Failed to clear logs", exc), expires)
        else:
            self.logs = []
            self.filtered_logs = []
            self.notification = Notification("success", "All activity logs have been cleared successfully", expires)
        finally:
            self.loading = False
        return self.notification

    def current_notification(self, now: Optional[datetime] = None) -> Optional[Notification]:
        if self.notification and not self.notification.is_active(now):
            self.notification = None
        return self.notification
