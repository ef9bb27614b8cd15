"""
Form description of the user settings.

Hosts render :data:`SETTINGS_FORM` however they like and route edits
through :func:`apply_change`, which coerces the raw value, produces the
updated settings and hands them to the host's save callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from .config import SenderSettings
from .errors import ConfigurationError


class FieldKind(str, Enum):
    TEXT = "text"
    TOGGLE = "toggle"


@dataclass(frozen=True)
class FormField:
    key: str
    name: str
    description: str
    kind: FieldKind
    placeholder: str = ""


SETTINGS_FORM: List[FormField] = [
    FormField(
        key="device_ip",
        name="Device IP Address",
        description=(
            "The IP address of your device on the local Wi-Fi network (e.g., 192.168.1.50). "
            "Check the Crosspoint Reader Web UI settings or your router."
        ),
        kind=FieldKind.TEXT,
        placeholder="192.168.1.50",
    ),
    FormField(
        key="device_port",
        name="Device Port",
        description="The port the Crosspoint Reader web server is running on (default is 80).",
        kind=FieldKind.TEXT,
        placeholder="80",
    ),
    FormField(
        key="upload_path",
        name="Upload Path",
        description="The directory on the device where notes will be saved (default is /).",
        kind=FieldKind.TEXT,
        placeholder="/",
    ),
    FormField(
        key="auto_create_dir",
        name="Auto-create missing directory",
        description="Automatically create the upload directory on the device if it doesn't exist.",
        kind=FieldKind.TOGGLE,
    ),
    FormField(
        key="convert_to_epub",
        name="Convert to EPUB",
        description="Convert the markdown file to an EPUB book before sending to Crosspoint.",
        kind=FieldKind.TOGGLE,
    ),
]

FIELDS_BY_KEY: Dict[str, FormField] = {f.key: f for f in SETTINGS_FORM}

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _coerce(form_field: FormField, raw_value: Union[str, bool]) -> Union[str, bool]:
    if form_field.kind is FieldKind.TEXT:
        return str(raw_value)
    if isinstance(raw_value, bool):
        return raw_value
    word = str(raw_value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigurationError(f"{form_field.name} expects on/off, got {raw_value!r}", field=form_field.key)


def apply_change(
    settings: SenderSettings,
    key: str,
    raw_value: Union[str, bool],
    on_save: Optional[Callable[[SenderSettings], object]] = None,
) -> SenderSettings:
    """Return *settings* with *key* set to *raw_value*, saved via *on_save*."""
    form_field = FIELDS_BY_KEY.get(key)
    if form_field is None:
        raise ConfigurationError(f"Unknown setting: {key}", field=key)

    updated = settings.model_copy(update={key: _coerce(form_field, raw_value)})
    if on_save is not None:
        on_save(updated)
    return updated
