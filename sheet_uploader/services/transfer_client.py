"""HTTP adapter for login and spreadsheet import."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx

from ..errors import AuthenticationError, TransferError
from ..models import (
    XLSX_MIME_TYPE,
    Credential,
    Session,
    TransferItem,
    TransferResult,
    UploadConfig,
)
from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/admin/login"
IMPORT_PATH = "/admin/patent/import"


class HTTPTransferClient:
    """
    HTTP client adapter for the import service.

    Implements ITransferClient protocol. Never retries: one call, one attempt.
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or UploadConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(timeout=self._config.timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPTransferClient not initialized. Use 'async with' context.")
        return self._client

    async def authenticate(self, endpoint: str, username: str, password: str) -> Credential:
        client = self._require_client()
        url = f"{endpoint.rstrip('/')}{LOGIN_PATH}"
        logger.debug(f"POST {url} as {username}")

        try:
            response = await client.post(url, json={"username": username, "password": password})
        except httpx.RequestError as exc:
            raise AuthenticationError(f"Login request failed: {exc}") from exc

        if not response.is_success:
            raise AuthenticationError(
                f"Login failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationError("Login failed: response is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise AuthenticationError("Login failed: invalid response data")
        data = payload.get("data")
        token = data.get("token") if isinstance(data, dict) else None
        if payload.get("success") is not True or not isinstance(token, str) or not token:
            message = payload.get("message")
            raise AuthenticationError(
                f"Login failed: invalid response data{f' ({message})' if message else ''}"
            )

        return Credential(token=token, user_id=data.get("id"), username=data.get("username"))

    async def test_connection(self, endpoint: str) -> bool:
        """Return True if the login endpoint answers at all, whatever the status."""
        client = self._require_client()
        try:
            await client.post(
                f"{endpoint.rstrip('/')}{LOGIN_PATH}",
                json={"username": "test", "password": "test"},
            )
        except httpx.RequestError as exc:
            logger.debug(f"Connection test failed: {exc}")
            return False
        return True

    async def transfer(
        self,
        item: TransferItem,
        session: Session,
        on_progress: ProgressCallback,
    ) -> TransferResult:
        client = self._require_client()

        if not item.source.is_file():
            raise TransferError(f"File not found: {item.source}")
        try:
            content = await asyncio.to_thread(item.source.read_bytes)
        except OSError as exc:
            raise TransferError(f"Could not read file {item.source}: {exc}") from exc

        url = f"{session.endpoint.rstrip('/')}{IMPORT_PATH}"
        params = {"onlyValidInvention": "true" if self._config.only_valid_invention else "false"}

        # Encode the multipart body once so it can be streamed in measured chunks.
        encoded = client.build_request(
            "POST", url, files={"file": (item.display_name, content, XLSX_MIME_TYPE)}
        )
        body = encoded.read()
        headers = {
            **session.auth_header,
            "Content-Type": encoded.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }
        logger.info(f"Uploading {item.display_name} ({len(content)} bytes) to {url}")

        try:
            response = await client.post(
                url,
                params=params,
                headers=headers,
                content=self._stream(body, on_progress),
            )
        except httpx.RequestError as exc:
            raise TransferError(f"Request failed: {exc}") from exc

        if not response.is_success:
            raise TransferError(response.text or response.reason_phrase, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransferError("Malformed response body", status_code=response.status_code) from exc
        if not isinstance(payload, dict):
            raise TransferError("Malformed response body", status_code=response.status_code)

        result = TransferResult.from_payload(payload)
        if not result.success:
            raise TransferError(result.message or "Server rejected the import", status_code=response.status_code)

        on_progress(100)
        return result

    async def _stream(self, body: bytes, on_progress: ProgressCallback) -> AsyncIterator[bytes]:
        total = len(body)
        chunk_size = max(1, self._config.chunk_size)
        sent = 0
        last = -1
        for start in range(0, total, chunk_size):
            chunk = body[start:start + chunk_size]
            yield chunk
            sent += len(chunk)
            # 100 is reported once the server accepts the import
            pct = min(sent * 100 // total, 99)
            if pct > last:
                last = pct
                on_progress(pct)
