"""Proxy Service — same-origin pass-through to the file store and backend API.

Uploaded files and a project's application list are served by other
services; the browser only ever talks to this origin. Upstream GETs are
idempotent, so transport failures are retried with exponential backoff.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from koihire.config import get_settings
from koihire.domain.exceptions import (
    NotFoundError,
    UnauthorizedError,
    UpstreamFailureError,
    ValidationError,
)
from koihire.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@dataclass(frozen=True)
class ProxiedFile:
    content: bytes
    content_type: str
    cache_control: str = IMMUTABLE_CACHE_CONTROL


@dataclass(frozen=True)
class ProxiedJSON:
    status_code: int
    body: Any


class ProxyService:
    """Forwards GETs upstream. ``transport`` is injectable for tests."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self._file_store_url = settings.file_store_url.rstrip("/")
        self._backend_api_url = settings.backend_api_url.rstrip("/")
        self._timeout = settings.proxy_timeout_seconds
        self._transport = transport

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, max=2),
        reraise=True,
    )
    async def _get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: Sequence[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.get(url, headers=headers, params=params)

    async def fetch_upload(self, path: str) -> ProxiedFile:
        """Fetch ``/uploads/{path}`` from the file store."""
        segments = [s for s in path.split("/") if s]
        if not segments or any(s in (".", "..") for s in segments):
            raise ValidationError("Invalid file path", field="path")

        url = f"{self._file_store_url}/uploads/{'/'.join(segments)}"
        try:
            response = await self._get(url)
        except httpx.HTTPError as exc:
            logger.error("proxy.upload_failed", url=url, error=str(exc))
            raise UpstreamFailureError("Failed to load file", upstream="file_store") from exc

        if not response.is_success:
            logger.info("proxy.upload_missing", url=url, status=response.status_code)
            raise NotFoundError("File", path, message="File not found")

        return ProxiedFile(
            content=response.content,
            content_type=response.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
        )

    async def fetch_project_applications(
        self,
        project_id: str,
        authorization: str | None,
        query: Sequence[tuple[str, str]] = (),
    ) -> ProxiedJSON:
        """Forward the caller's Authorization and query string verbatim."""
        if not authorization:
            raise UnauthorizedError("Authorization required")

        url = f"{self._backend_api_url}/applications/project/{project_id}"
        try:
            response = await self._get(
                url,
                headers={"Authorization": authorization, "Content-Type": "application/json"},
                params=list(query),
            )
            body = response.json()
        except httpx.HTTPError as exc:
            logger.error("proxy.applications_failed", project_id=project_id, error=str(exc))
            raise UpstreamFailureError("Applications service unavailable", upstream="api") from exc
        except ValueError as exc:
            raise UpstreamFailureError(
                "Applications service returned invalid JSON", upstream="api"
            ) from exc

        return ProxiedJSON(status_code=response.status_code, body=body)
