from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class LogRole(BaseModel):
    name: str


class LogUser(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    username: Optional[str] = None
    fullName: Optional[str] = None
    role: Optional[LogRole] = None

    model_config = {"populate_by_name": True}

    @property
    def display_name(self) -> str:
        return self.fullName or self.username or "Unknown"


class ActivityLog(BaseModel):
    id: str = Field(..., alias="_id")
    userId: Optional[str] = None
    user: Optional[LogUser] = None
    action: str
    entity: str
    entityId: Optional[str] = None
    details: str = ""
    ipAddress: Optional[str] = None
    timestamp: datetime

    model_config = {"populate_by_name": True}
