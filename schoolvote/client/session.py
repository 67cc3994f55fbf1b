import logging
from typing import Optional

from ..permissions import has_permission
from ..schemas import UserOut
from .api import ApiClient
from .errors import ApiError
from .storage import TOKEN_KEY

logger = logging.getLogger(__name__)


class UserSession:
    """The signed-in administrator, from login until logout."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.user: Optional[UserOut] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def login(self, username: str, password: str) -> UserOut:
        data = await self.api.post("/api/auth/login", json={"username": username, "password": password})
        self.api.store.set(TOKEN_KEY, data["access_token"])
        self.user = UserOut(**data["user"])
        logger.info(f"Signed in as {self.user.username}")
        return self.user

    async def restore(self) -> Optional[UserOut]:
        """Resume a session from a stored token, dropping the token if the server rejects it."""
        if not self.api.store.get(TOKEN_KEY):
            return None
        try:
            self.user = UserOut(**await self.api.get("/api/auth/me", auth=True))
        except ApiError as exc:
            if exc.status_code in (401, 403):
                self.api.store.remove(TOKEN_KEY)
            logger.error(f"Could not restore session: {exc.message}")
            self.user = None
        return self.user

    def logout(self) -> None:
        self.api.store.remove(TOKEN_KEY)
        self.user = None

    def has_permission(self, resource: str, action: str) -> bool:
        return self.user is not None and has_permission(self.user.role, resource, action)
