import logging
from typing import Any, Dict, Optional

import httpx

from .. import config
from .errors import ApiError
from .storage import TOKEN_KEY, LocalStore

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin JSON wrapper around httpx.AsyncClient bound to one API base URL."""

    def __init__(
        self,
        store: LocalStore,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.base_url = (base_url or config.api_url()).rstrip("/")
        # Only the ballot fetch sets an explicit timeout
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=None)

    def auth_headers(self) -> Dict[str, str]:
        token = self.store.get(TOKEN_KEY)
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        auth: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        merged = {"Content-Type": "application/json"}
        if auth:
            merged.update(self.auth_headers())
        if headers:
            merged.update(headers)
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=merged,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as exc:
            raise ApiError(f"Request to {path} timed out") from exc
        except httpx.RequestError as exc:
            raise ApiError(f"Could not reach server: {exc}") from exc

        if response.is_error:
            raise ApiError(_error_detail(response), status_code=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error(f"Non-JSON response from {path}: {response.status_code}")
            raise ApiError("Invalid response from server", status_code=response.status_code) from exc

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, str) and detail:
        return detail
    return f"Request failed: {response.status_code}"
