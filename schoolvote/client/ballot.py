"""Voter ballot: fetch the candidates for one voter, collect one choice or
abstention per position, and hand a complete ballot to submission.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import BALLOT_FETCH_TIMEOUT
from .api import ApiClient
from .errors import ApiError, IncompleteBallotError
from .storage import VOTER_ID_KEY, LocalStore

logger = logging.getLogger(__name__)

VOTER_ID_REQUIRED = "Please enter your Voter ID to view candidates."
NO_CANDIDATES = "No candidates available for your voter group."
VOTER_GROUP_NOT_FOUND = "No candidates found for your voter group. Please contact the administrator."
LOAD_FAILED = "Failed to load candidates. Please try again."
REFRESH_FAILED = "Failed to refresh candidates. Please try again."

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}

Candidate = Dict[str, Any]


def candidate_id(candidate: Candidate) -> str:
    return candidate.get("id") or candidate.get("_id") or ""


def display_position(position: str) -> str:
    if not position or position == "undefined":
        return "General Position"
    return position


def filter_ballot(ballot: Dict[str, List[Candidate]], term: str) -> Dict[str, List[Candidate]]:
    """Positions and candidates whose candidate or position name contains term, case-insensitively."""
    if not term:
        return ballot
    needle = term.lower()
    filtered: Dict[str, List[Candidate]] = {}
    for position, candidates in ballot.items():
        matches = [
            c for c in candidates
            if needle in (c.get("name") or "").lower() or needle in position.lower()
        ]
        if matches:
            filtered[position] = matches
    return filtered


def _is_ballot(data: Any) -> bool:
    return isinstance(data, dict) and all(
        isinstance(candidates, list) and all(isinstance(c, dict) for c in candidates)
        for candidates in data.values()
    )


@dataclass
class BallotConfirmation:
    voter_id: str
    selected_candidates: Dict[str, Candidate] = field(default_factory=dict)
    none_selected: Dict[str, bool] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {
            "voterId": self.voter_id,
            "selections": {p: candidate_id(c) for p, c in self.selected_candidates.items()},
            "noneSelected": dict(self.none_selected),
        }


class BallotWorkflow:
    """Selection state for one voter's ballot.

    All fetches go through one path: a new fetch cancels the one in flight,
    and a response that is not from the latest request is dropped. Every
    successful fetch, including a manual refresh, clears prior selections.
    """

    def __init__(self, api: ApiClient, store: LocalStore):
        self.api = api
        self.store = store
        self.candidates_by_position: Dict[str, List[Candidate]] = {}
        self.selected_candidate_ids: Dict[str, str] = {}
        self.none_selected: Dict[str, bool] = {}
        self.error = ""
        self.loading = False
        self.last_updated: Optional[datetime] = None
        self._request_seq = 0
        self._inflight: Optional[asyncio.Future] = None

    @property
    def positions(self) -> List[str]:
        return list(self.candidates_by_position)

    @property
    def voter_id(self) -> Optional[str]:
        return self.store.get(VOTER_ID_KEY)

    async def load(self) -> None:
        await self._fetch(LOAD_FAILED)

    async def refresh(self) -> None:
        await self._fetch(REFRESH_FAILED)

    async def _fetch(self, failure_message: str) -> None:
        voter_id = self.voter_id
        if not voter_id:
            self.error = VOTER_ID_REQUIRED
            self.loading = False
            return

        self._supersede_inflight()
        seq = self._request_seq
        self.loading = True
        task = asyncio.ensure_future(
            self.api.get(
                "/api/candidates/for-voter",
                params={"voterId": voter_id},
                headers=NO_CACHE_HEADERS,
                timeout=BALLOT_FETCH_TIMEOUT,
            )
        )
        self._inflight = task

        try:
            data = await task
        except asyncio.CancelledError:
            if seq != self._request_seq:
                logger.debug(f"Ballot request {seq} superseded by {self._request_seq}")
                return
            raise
        except ApiError as exc:
            if seq == self._request_seq:
                logger.error(f"Error fetching candidates: {exc.message}")
                self.error = VOTER_GROUP_NOT_FOUND if exc.status_code == 404 else failure_message
            return
        finally:
            if seq == self._request_seq:
                self.loading = False
                self._inflight = None

        if seq != self._request_seq:
            logger.debug(f"Dropping stale ballot response {seq}")
            return
        self._apply(data, failure_message)

    def _supersede_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self._request_seq += 1
        self.loading = False

    def _apply(self, data: Any, failure_message: str = LOAD_FAILED) -> None:
        if data and not _is_ballot(data):
            logger.error(f"Unexpected ballot payload: {type(data).__name__}")
            self.error = failure_message
            return
        self.selected_candidate_ids = {}
        self.none_selected = {}
        if not data:
            self.candidates_by_position = {}
            self.error = NO_CANDIDATES
            return
        self.candidates_by_position = dict(data)
        self.error = ""
        self.last_updated = datetime.now(timezone.utc)

    def _find_candidate(self, position: str, cid: str) -> Optional[Candidate]:
        for candidate in self.candidates_by_position.get(position, []):
            if candidate_id(candidate) == cid:
                return candidate
        return None

    def select(self, position: str, cid: str) -> None:
        if position not in self.candidates_by_position:
            raise ValueError(f"Unknown position: {position}")
        if self._find_candidate(position, cid) is None:
            raise ValueError(f"Candidate {cid} is not standing for {position}")
        self.none_selected.pop(position, None)
        self.selected_candidate_ids[position] = cid
        self.error = ""

    def abstain(self, position: str) -> None:
        if position not in self.candidates_by_position:
            raise ValueError(f"Unknown position: {position}")
        self.selected_candidate_ids.pop(position, None)
        self.none_selected[position] = True
        self.error = ""

    def is_complete_for(self, position: str) -> bool:
        return position in self.selected_candidate_ids or self.none_selected.get(position, False)

    @property
    def unselected_positions(self) -> List[str]:
        return [p for p in self.positions if not self.is_complete_for(p)]

    @property
    def can_submit(self) -> bool:
        return bool(self.positions) and not self.unselected_positions

    def filtered(self, term: str) -> Dict[str, List[Candidate]]:
        return filter_ballot(self.candidates_by_position, term)

    def confirm(self) -> BallotConfirmation:
        unselected = self.unselected_positions
        if unselected:
            err = IncompleteBallotError(unselected)
            self.error = str(err)
            raise err

        selected: Dict[str, Candidate] = {}
        for position, cid in self.selected_candidate_ids.items():
            candidate = self._find_candidate(position, cid)
            if candidate is not None:
                selected[position] = candidate
        abstained = {p: True for p, flag in self.none_selected.items() if flag}
        return BallotConfirmation(voter_id=self.voter_id or "", selected_candidates=selected, none_selected=abstained)

    async def submit(self, confirmation: BallotConfirmation) -> Optional[Dict[str, Any]]:
        """Send a confirmed ballot; returns the server receipt, or None with error set."""
        try:
            receipt = await self.api.post("/api/votes", json=confirmation.payload())
        except ApiError as exc:
            logger.error(f"Error submitting ballot for {confirmation.voter_id}: {exc.message}")
            self.error = exc.message
            return None
        self._supersede_inflight()
        self.store.remove(VOTER_ID_KEY)
        self.candidates_by_position = {}
        self.selected_candidate_ids = {}
        self.none_selected = {}
        self.error = ""
        return receipt
