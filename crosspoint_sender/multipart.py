"""
Hand-built ``multipart/form-data`` bodies.

The file body is joined at the byte level so binary payloads such as EPUB
archives travel unmodified.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

BOUNDARY_PREFIX = "----CrosspointFormBoundary"


@dataclass(frozen=True)
class MultipartPayload:
    """An encoded single-file form; ``body`` is the full request body."""

    boundary: str
    field_name: str
    filename: str
    content_type: str
    body: bytes

    @property
    def header_value(self) -> str:
        """Value for the request's ``Content-Type`` header."""
        return f"multipart/form-data; boundary={self.boundary}"


def new_boundary() -> str:
    return BOUNDARY_PREFIX + secrets.token_hex(16)


def _quote(value: str) -> str:
    return value.replace("\r", "%0D").replace("\n", "%0A").replace('"', "%22")


def build(field_name: str, filename: str, content_type: str, body: bytes) -> MultipartPayload:
    boundary = new_boundary()
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{_quote(field_name)}"; filename="{_quote(filename)}"\r\n'
        f"Content-Type: {content_type}\r\n"
        "\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return MultipartPayload(
        boundary=boundary,
        field_name=field_name,
        filename=filename,
        content_type=content_type,
        body=b"".join((head, bytes(body), tail)),
    )
