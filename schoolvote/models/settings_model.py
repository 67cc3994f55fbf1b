from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime, time, timezone


class ElectionSettings(BaseModel):
    electionTitle: str = Field("Student Council Election", examples=["Prefectorial Elections 2025"])
    schoolName: str = Field("", examples=["Peki Senior High School"])
    electionDate: Optional[date] = None
    votingStartTime: str = Field("08:00", pattern=r"^\d{2}:\d{2}$")
    votingEndTime: str = Field("17:00", pattern=r"^\d{2}:\d{2}$")

    def voting_window(self):
        """(start, end) as UTC datetimes, or None when no date is set."""
        if self.electionDate is None:
            return None
        start = datetime.combine(self.electionDate, time.fromisoformat(self.votingStartTime), tzinfo=timezone.utc)
        end = datetime.combine(self.electionDate, time.fromisoformat(self.votingEndTime), tzinfo=timezone.utc)
        return start, end


class SettingsUpdate(BaseModel):
    electionTitle: Optional[str] = None
    schoolName: Optional[str] = None
    electionDate: Optional[date] = None
    votingStartTime: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    votingEndTime: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
