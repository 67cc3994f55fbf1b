from typing import List, Optional


class ClientError(Exception):
    """Base class for errors raised by the client workflows."""


class ApiError(ClientError):
    """A request failed; status_code is None when no response arrived."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class IncompleteBallotError(ClientError):
    def __init__(self, positions: List[str]):
        self.positions = list(positions)
        super().__init__(f"Please make a selection for each position: {', '.join(self.positions)}")
