"""Async client for the hosted object store holding scanned books."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx

from .config import BlobStoreConfig
from .errors import FetchError
from .logging_utils import log_event


class BlobStore:
    """Fetches file bytes by id from ``/storage/buckets/{bucket}/files/{id}/view``."""

    def __init__(self, config: BlobStoreConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), follow_redirects=True)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BlobStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def view_url(self, document_id: str) -> str:
        base = self.config.endpoint.rstrip("/")
        url = f"{base}/storage/buckets/{quote(self.config.bucket_id, safe='')}/files/{quote(document_id, safe='')}/view"
        if self.config.project_id:
            url += f"?project={quote(self.config.project_id, safe='')}"
        return url

    async def fetch(self, document_id: str) -> bytes:
        url = self.view_url(document_id)
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            log_event("blob_fetch_failed", document_id=document_id, error=str(exc))
            raise FetchError(f"Failed to load PDF file: {exc}", document_id=document_id) from exc
        if response.status_code >= 400:
            log_event("blob_fetch_failed", document_id=document_id, status=response.status_code)
            raise FetchError(
                f"Failed to load PDF file: HTTP error! status: {response.status_code}",
                document_id=document_id,
                status_code=response.status_code,
            )
        return response.content
