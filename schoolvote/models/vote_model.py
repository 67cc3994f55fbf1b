from pydantic import BaseModel, Field
from typing import Dict


class VoteSubmission(BaseModel):
    voterId: str
    # position -> candidate id
    selections: Dict[str, str] = Field(default_factory=dict)
    # position -> explicitly abstained
    noneSelected: Dict[str, bool] = Field(default_factory=dict)
