from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class VoterIn(BaseModel):
    voterId: str = Field(..., min_length=1, examples=["PSHS-2025-0142"])
    name: str
    year: Optional[str] = None
    # "class" is reserved in Python, the wire name is kept through the alias
    className: Optional[str] = Field(None, alias="class")
    house: Optional[str] = None

    model_config = {"populate_by_name": True}


class VoterOut(VoterIn):
    hasVoted: bool = False
    votedAt: Optional[datetime] = None


class VoterValidateRequest(BaseModel):
    voterId: str
