from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List


EPUB_MEDIA_TYPE = "application/epub+zip"
MARKDOWN_MEDIA_TYPE = "text/markdown"

_markdown_suffix_re = re.compile(r"\.md$", re.IGNORECASE)


@dataclass(frozen=True)
class Document:
    """A note to send: its markdown source and the filename it is stored under."""

    raw_markdown: str
    filename: str

    def encoded(self) -> bytes:
        return self.raw_markdown.encode("utf-8")


def normalize_upload_path(path: str | None) -> str:
    """Return *path* with a single leading slash; blank paths are the root."""

    cleaned = (path or "").strip()
    if not cleaned:
        return "/"
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned


def path_segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def join_device_path(parent: str, segment: str) -> str:
    if parent == "/":
        return f"/{segment}"
    return f"{parent}/{segment}"


def epub_export_name(filename: str) -> str:
    return _markdown_suffix_re.sub("", filename) + ".epub"


def merge_dicts(base: dict, override: dict) -> dict:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
