"""
HTTP client for the Crosspoint Reader's file upload endpoints.
"""
import logging
from typing import Optional

import httpx

from .errors import DirectoryCreationError, TransportError
from .multipart import MultipartPayload

logger = logging.getLogger(__name__)


class DeviceClient:
    """Async client for one device, used for a single send.

    ``transport`` lets callers swap the network layer, e.g. for an
    in-process fake device.
    """

    def __init__(self, base_url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        try:
            self._client = httpx.AsyncClient(base_url=base_url, transport=transport)
        except httpx.InvalidURL as exc:
            raise TransportError(f"Invalid device address {base_url}: {exc}", cause=exc) from exc

    async def __aenter__(self) -> "DeviceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_directory(self, parent: str, name: str) -> None:
        """Ask the device to create *name* under *parent*.

        Raises :class:`DirectoryCreationError` for network failures and for
        any non-2xx answer, which includes "already exists".
        """
        try:
            response = await self._client.post("/mkdir", params={"path": parent, "name": name})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DirectoryCreationError(parent, name, cause=exc) from exc
        if not response.is_success:
            raise DirectoryCreationError(
                parent, name, status_code=response.status_code, response_text=response.text
            )
        logger.debug("Created %s under %s", name, parent)

    async def upload(self, path: str, payload: MultipartPayload) -> httpx.Response:
        try:
            response = await self._client.post(
                "/upload",
                params={"path": path},
                content=payload.body,
                headers={"Content-Type": payload.header_value},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"Could not reach device at {self.base_url}: {exc}", cause=exc) from exc

        if response.status_code != 200:
            raise TransportError(
                f"Device responded with status: {response.status_code}. {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )
        logger.info("Uploaded %s (%d bytes) to %s", payload.filename, len(payload.body), path)
        return response
