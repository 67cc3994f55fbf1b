from pydantic import BaseModel, Field
from typing import List


class ActivitySeries(BaseModel):
    labels: List[str] = Field(default_factory=list)
    data: List[int] = Field(default_factory=list)


class VotingActivity(BaseModel):
    year: ActivitySeries = Field(default_factory=ActivitySeries)
    # wire name "class"
    class_: ActivitySeries = Field(default_factory=ActivitySeries, alias="class")
    house: ActivitySeries = Field(default_factory=ActivitySeries)

    model_config = {"populate_by_name": True}


class ElectionStats(BaseModel):
    totalVoters: int = 0
    votedCount: int = 0
    remainingVoters: int = 0
    participationRate: float = 0.0
    totalCandidates: int = 0
    votingActivity: VotingActivity = Field(default_factory=VotingActivity)
