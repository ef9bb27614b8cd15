"""
Send markdown notes to a Crosspoint Reader over Wi-Fi, as plain text or as
a single-chapter EPUB.
"""

__version__ = "1.0.0"

from .common import Document
from .config import SenderSettings, UploadTarget, load_settings, save_settings
from .errors import (
    ConfigurationError,
    ConversionError,
    DirectoryCreationError,
    PackagingError,
    SenderError,
    TransportError,
)
from .sender import NoteSender, UploadResult, UploadState, send_note

__all__ = [
    "ConfigurationError",
    "ConversionError",
    "DirectoryCreationError",
    "Document",
    "NoteSender",
    "PackagingError",
    "SenderError",
    "SenderSettings",
    "TransportError",
    "UploadResult",
    "UploadState",
    "UploadTarget",
    "__version__",
    "load_settings",
    "save_settings",
    "send_note",
]
