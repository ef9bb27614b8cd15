"""
Sender configuration: persisted settings and the per-call upload target.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from .common import merge_dicts
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "crosspoint-sender" / "settings.json"


class UploadTarget(BaseModel):
    """Where and how a single note is sent. Immutable for the whole call."""

    model_config = ConfigDict(frozen=True)

    ip: str
    port: int = DEFAULT_PORT
    path: str = "/"
    auto_create_dir: bool = True
    convert_to_epub: bool = False

    @property
    def base_url(self) -> str:
        return f"http://{self.ip}:{self.port}"

    def device_url(self) -> httpx.URL:
        """Parse :attr:`base_url`, raising :class:`ConfigurationError` if it is malformed."""
        try:
            return httpx.URL(self.base_url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(
                f"Invalid device address {self.ip!r}: {exc}", field="device_ip"
            ) from exc


class SenderSettings(BaseSettings):
    """User settings, read from the environment and the settings file."""

    model_config = SettingsConfigDict(
        env_prefix="CROSSPOINT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Device
    device_ip: str = ""
    device_port: str = str(DEFAULT_PORT)

    # Upload behaviour
    upload_path: str = "/"
    auto_create_dir: bool = True
    convert_to_epub: bool = False

    def to_target(self) -> UploadTarget:
        """Validate the settings and freeze them into an :class:`UploadTarget`."""
        ip = self.device_ip.strip()
        if not ip:
            raise ConfigurationError(
                "Please configure your device IP address in the settings.",
                field="device_ip",
            )

        port_text = self.device_port.strip() or str(DEFAULT_PORT)
        try:
            port = int(port_text)
        except ValueError:
            raise ConfigurationError(f"Invalid device port: {port_text!r}", field="device_port")
        if not 0 < port < 65536:
            raise ConfigurationError(f"Device port out of range: {port}", field="device_port")

        target = UploadTarget(
            ip=ip,
            port=port,
            path=self.upload_path,
            auto_create_dir=self.auto_create_dir,
            convert_to_epub=self.convert_to_epub,
        )
        target.device_url()
        return target


def load_settings(path: Optional[Union[str, Path]] = None) -> SenderSettings:
    """Load stored settings, merged over the defaults.

    A missing file yields the defaults. Keys in the file take precedence over
    environment variables.
    """
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    defaults = SenderSettings().model_dump()
    if not settings_path.exists():
        logger.debug("No settings file at %s; using defaults", settings_path)
        return SenderSettings(**defaults)

    with settings_path.open("r", encoding="utf-8") as fh:
        stored = json.load(fh)
    if not isinstance(stored, dict):
        raise ConfigurationError(f"Settings file {settings_path} must contain a JSON object")
    return SenderSettings(**merge_dicts(defaults, stored))


def save_settings(settings: SenderSettings, path: Optional[Union[str, Path]] = None) -> Path:
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with settings_path.open("w", encoding="utf-8") as fh:
        json.dump(settings.model_dump(), fh, ensure_ascii=False, indent=2)
    logger.debug("Saved settings to %s", settings_path)
    return settings_path
