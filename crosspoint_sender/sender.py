"""
Upload orchestration: choose the payload, prepare the remote directory and
send the note to the device.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import httpx

from . import multipart
from .common import (
    EPUB_MEDIA_TYPE,
    MARKDOWN_MEDIA_TYPE,
    Document,
    epub_export_name,
    join_device_path,
    normalize_upload_path,
    path_segments,
)
from .config import UploadTarget
from .errors import (
    ConfigurationError,
    ConversionError,
    DirectoryCreationError,
    PackagingError,
    SenderError,
    TransportError,
)
from .logging_config import LoggingContext
from .package import markdown_to_epub
from .transport import DeviceClient

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]
EpubBuilder = Callable[[str, str], bytes]

FORM_FIELD = "file"
EPUB_FALLBACK_WARNING = "Failed to convert to EPUB. Sending as markdown instead."


class UploadState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    ENSURING_DIRECTORIES = "ensuring_directories"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PreparedPayload:
    filename: str
    content_type: str
    data: bytes
    converted: bool


@dataclass
class UploadResult:
    """Outcome of one send, returned to the caller for display."""

    state: UploadState = UploadState.IDLE
    export_filename: str = ""
    content_type: str = ""
    upload_path: str = "/"
    payload_size: int = 0
    warnings: List[str] = field(default_factory=list)
    error: Optional[SenderError] = None

    @property
    def ok(self) -> bool:
        return self.state is UploadState.DONE


def _log_notice(message: str) -> None:
    logger.info(message)


def raw_payload(document: Document) -> PreparedPayload:
    return PreparedPayload(document.filename, MARKDOWN_MEDIA_TYPE, document.encoded(), converted=False)


def prepare_payload(
    document: Document,
    convert_to_epub: bool,
    *,
    epub_builder: EpubBuilder = markdown_to_epub,
    notify: Notifier = _log_notice,
    warnings: Optional[List[str]] = None,
) -> PreparedPayload:
    """Pick the wire payload for *document*.

    EPUB conversion failures fall back to the raw markdown and record a
    warning; they never abort the send.
    """
    if not convert_to_epub:
        return raw_payload(document)

    notify(f"Converting {document.filename} to EPUB...")
    try:
        data = epub_builder(document.raw_markdown, document.filename)
    except (ConversionError, PackagingError) as exc:
        logger.warning("EPUB conversion error for %s: %s", document.filename, exc.message)
        if warnings is not None:
            warnings.append(EPUB_FALLBACK_WARNING)
        notify(EPUB_FALLBACK_WARNING)
        return raw_payload(document)
    return PreparedPayload(epub_export_name(document.filename), EPUB_MEDIA_TYPE, data, converted=True)


async def ensure_directories(client: DeviceClient, upload_path: str) -> List[DirectoryCreationError]:
    """Create every segment of *upload_path* on the device, one at a time.

    Each failure is collected and the walk continues with the next segment;
    "already exists" is indistinguishable from other failures here.
    """
    failures: List[DirectoryCreationError] = []
    parent = "/"
    for segment in path_segments(upload_path):
        try:
            await client.create_directory(parent, segment)
        except DirectoryCreationError as exc:
            failures.append(exc)
        parent = join_device_path(parent, segment)
    return failures


class NoteSender:
    """Sends documents to a Crosspoint Reader.

    Holds no per-send state, so one instance may serve concurrent sends.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        *,
        epub_builder: EpubBuilder = markdown_to_epub,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._notify = notifier or _log_notice
        self._epub_builder = epub_builder
        self._transport = transport

    def _transition(self, result: UploadResult, state: UploadState) -> None:
        logger.debug("State %s -> %s", result.state.value, state.value)
        result.state = state

    def _fail(self, result: UploadResult, error: SenderError, notice: str) -> UploadResult:
        self._transition(result, UploadState.FAILED)
        result.error = error
        self._notify(notice)
        return result

    async def send(self, document: Document, target: UploadTarget) -> UploadResult:
        result = UploadResult()
        with LoggingContext("send_note", note=document.filename):
            if not target.ip.strip():
                error = ConfigurationError(
                    "Please configure your device IP address in the settings.", field="device_ip"
                )
                return self._fail(result, error, error.message)
            try:
                target.device_url()
            except ConfigurationError as exc:
                return self._fail(result, exc, f"Failed to send note: {exc.message}")

            self._notify(f"Sending {document.filename} to Crosspoint...")

            self._transition(result, UploadState.PREPARING)
            prepared = prepare_payload(
                document,
                target.convert_to_epub,
                epub_builder=self._epub_builder,
                notify=self._notify,
                warnings=result.warnings,
            )
            result.export_filename = prepared.filename
            result.content_type = prepared.content_type
            result.payload_size = len(prepared.data)
            result.upload_path = normalize_upload_path(target.path)

            try:
                async with DeviceClient(target.base_url, transport=self._transport) as client:
                    if target.auto_create_dir and result.upload_path != "/":
                        self._transition(result, UploadState.ENSURING_DIRECTORIES)
                        await ensure_directories(client, result.upload_path)

                    self._transition(result, UploadState.UPLOADING)
                    payload = multipart.build(FORM_FIELD, prepared.filename, prepared.content_type, prepared.data)
                    await client.upload(result.upload_path, payload)
            except TransportError as exc:
                return self._fail(result, exc, f"Failed to send note: {exc.message}")

            self._transition(result, UploadState.DONE)
            self._notify(f"Successfully sent {prepared.filename} to Crosspoint!")
            return result


def send_note(
    document: Document,
    target: UploadTarget,
    notifier: Optional[Notifier] = None,
) -> UploadResult:
    """Blocking wrapper around :meth:`NoteSender.send`."""
    return asyncio.run(NoteSender(notifier).send(document, target))
