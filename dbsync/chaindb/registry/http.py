"""
HTTP client for the pointer registry service (see console/gateway).

Endpoints:
    GET /api/v1/pointer/{name}  -> {"name": ..., "content_id": ... | null}
    PUT /api/v1/pointer/{name}  (Authorization: Bearer <key>)
        body {"content_id": ..., "expected": ..., "check_expected": bool}

Status mapping:
    401 / 403 -> UnauthorizedError
    409       -> ConflictError
    404 (GET) -> pointer unset
    other     -> TransientError
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import ConflictError, TransientError, UnauthorizedError
from .base import ANY, Expected

logger = logging.getLogger(__name__)


class HttpPointerRegistry:
    """PointerRegistry that talks to a remote registry service.

    Attributes:
        config: RegistryConfig with url / name / timeout
    """

    def __init__(
        self,
        config: Any,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: RegistryConfig instance
            transport: Optional httpx transport (tests route this to the app)
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.url,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    @property
    def _path(self) -> str:
        return f"/api/v1/pointer/{self.config.name}"

    async def read(self) -> Optional[str]:
        try:
            response = await self._client.get(self._path)
        except httpx.HTTPError as e:
            raise TransientError(f"Registry read failed: {e}", collaborator="registry")

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise TransientError(
                f"Registry read returned HTTP {response.status_code}", collaborator="registry"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise TransientError(f"Registry returned invalid JSON: {e}", collaborator="registry")
        if not isinstance(body, dict):
            raise TransientError(
                f"Registry returned {type(body).__name__}, expected an object",
                collaborator="registry",
            )
        content_id = body.get("content_id")
        if content_id is not None and not isinstance(content_id, str):
            raise TransientError("Registry returned a non-string content_id", collaborator="registry")
        return content_id

    async def write(
        self,
        content_id: str,
        *,
        credential: str,
        expected: Expected = ANY,
    ) -> None:
        if not credential:
            raise UnauthorizedError("No credential supplied for registry write")

        body = {
            "content_id": content_id,
            "expected": None if expected is ANY else expected,
            "check_expected": expected is not ANY,
        }
        try:
            response = await self._client.put(
                self._path,
                json=body,
                headers={"Authorization": f"Bearer {credential}"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Registry write failed: {e}", collaborator="registry")

        if response.status_code in (401, 403):
            raise UnauthorizedError("Registry rejected the credential")
        if response.status_code == 409:
            actual = None
            try:
                actual = response.json().get("detail", {}).get("actual")
            except (ValueError, AttributeError):
                pass
            raise ConflictError(
                "Registry pointer moved since it was read",
                expected=body["expected"],
                actual=actual,
            )
        if response.status_code >= 400:
            raise TransientError(
                f"Registry write returned HTTP {response.status_code}", collaborator="registry"
            )

        logger.debug(f"Registry pointer {self.config.name} set to {content_id}")

    async def close(self) -> None:
        await self._client.aclose()
