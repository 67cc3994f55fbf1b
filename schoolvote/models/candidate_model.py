from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class VoterCategory(BaseModel):
    type: Literal["all", "year", "class", "house"] = "all"
    values: List[str] = Field(default_factory=list)


class CandidateIn(BaseModel):
    name: str = Field(..., min_length=1, examples=["Ama Mensah"])
    position: str = Field(..., min_length=1, examples=["Senior Prefect"])
    imageUrl: Optional[str] = None
    bio: Optional[str] = None
    manifesto: Optional[str] = None
    voterCategory: VoterCategory = Field(default_factory=VoterCategory)


class CandidateUpdate(BaseModel):
    name: Optional[str] = None
    position: Optional[str] = None
    imageUrl: Optional[str] = None
    bio: Optional[str] = None
    manifesto: Optional[str] = None
    voterCategory: Optional[VoterCategory] = None


class Candidate(CandidateIn):
    id: str
    votes: int = 0
