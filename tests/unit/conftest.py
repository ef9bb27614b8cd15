"""
Shared fixtures: an in-process fake Crosspoint Reader.

The fake device exposes the same ``/mkdir`` and ``/upload`` endpoints as the
real web server and records every call. Uploads are parsed by FastAPI's
regular multipart handling.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import httpx
import pytest
from fastapi import FastAPI, File, UploadFile
from fastapi.responses import PlainTextResponse


@dataclass
class FakeDevice:
    mkdir_calls: List[Tuple[str, str]] = field(default_factory=list)
    uploads: List[Dict[str, object]] = field(default_factory=list)
    failing_dirs: Set[str] = field(default_factory=set)
    upload_status: int = 200
    upload_message: str = "File uploaded successfully"


def make_device_app(device: FakeDevice) -> FastAPI:
    app = FastAPI()

    @app.post("/mkdir")
    async def mkdir(path: str, name: str):
        device.mkdir_calls.append((path, name))
        if name in device.failing_dirs:
            return PlainTextResponse("Folder already exists", status_code=400)
        return PlainTextResponse("Folder created")

    @app.post("/upload")
    async def upload(path: str, file: UploadFile = File(...)):
        data = await file.read()
        device.uploads.append(
            {
                "path": path,
                "filename": file.filename,
                "content_type": file.content_type,
                "data": data,
            }
        )
        return PlainTextResponse(device.upload_message, status_code=device.upload_status)

    return app


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def device_transport(device: FakeDevice) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=make_device_app(device))


@pytest.fixture
def notices() -> List[str]:
    return []


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and ``.env``."""
    for key in ("DEVICE_IP", "DEVICE_PORT", "UPLOAD_PATH", "AUTO_CREATE_DIR", "CONVERT_TO_EPUB"):
        monkeypatch.delenv(f"CROSSPOINT_{key}", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
