from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .config import DEFAULT_SETTINGS_PATH, load_settings, save_settings
from .errors import SenderError
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


_DEPENDENCY_HINTS = {
    "lxml": "Install the lxml wheels via `pip install lxml`.",
    "markdown": "Install Python-Markdown via `pip install markdown`.",
    "httpx": "Install httpx via `pip install httpx`.",
}


def _module_available(module: str) -> bool:
    """Return True if *module* can be imported without executing it."""

    if importlib.util.find_spec(module):
        return True
    if "." in module:
        root = module.split(".")[0]
        if importlib.util.find_spec(root):
            return True
    return False


def _verify_runtime_dependencies(modules: Iterable[str]) -> None:
    missing: List[str] = []
    for module in modules:
        if not _module_available(module):
            missing.append(module)
    if not missing:
        return

    seen: Set[str] = set()
    bullet_points: List[str] = []
    for name in missing:
        root = name.split(".")[0]
        if root in seen:
            continue
        seen.add(root)
        hint = _DEPENDENCY_HINTS.get(root, "Install dependencies with `pip install crosspoint-sender`.")
        bullet_points.append(f"  - {root}: {hint}")

    message = (
        "Missing required Python packages for this command:\n"
        + "\n".join(bullet_points)
        + "\nInstall the packages and retry."
    )
    raise SystemExit(message)


def _existing_file(path_str: str) -> Path:
    path = Path(path_str)
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"{path} is not an existing file")
    return path


def _notify(message: str) -> None:
    print(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send markdown notes to a Crosspoint Reader")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_PATH, type=Path, help="Settings JSON file")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--log-dir", default=None, type=Path)

    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser("send", help="Send a note to the device")
    send_parser.add_argument("--input", dest="input_path", required=True, type=_existing_file)
    send_parser.add_argument("--ip", default=None, help="Device IP address")
    send_parser.add_argument("--port", default=None, help="Device port")
    send_parser.add_argument("--path", dest="upload_path", default=None, help="Upload directory on the device")
    send_parser.add_argument("--epub", dest="convert_to_epub", action="store_true", default=None)
    send_parser.add_argument("--no-epub", dest="convert_to_epub", action="store_false")
    send_parser.add_argument("--auto-mkdir", dest="auto_create_dir", action="store_true", default=None)
    send_parser.add_argument("--no-auto-mkdir", dest="auto_create_dir", action="store_false")

    epub_parser = subparsers.add_parser("epub", help="Convert a note to an EPUB file locally")
    epub_parser.add_argument("--input", dest="input_path", required=True, type=_existing_file)
    epub_parser.add_argument("--out", dest="out_path", default=None)

    config_parser = subparsers.add_parser("config", help="Show or change the saved settings")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Print the current settings")
    set_parser = config_sub.add_parser("set", help="Change one setting")
    set_parser.add_argument("key")
    set_parser.add_argument("value")

    return parser


def _handle_send(args: argparse.Namespace) -> int:
    _verify_runtime_dependencies({"httpx", "lxml.etree", "markdown"})
    from .common import Document
    from .sender import send_note

    settings = load_settings(args.settings)
    overrides = {
        "device_ip": args.ip,
        "device_port": args.port,
        "upload_path": args.upload_path,
        "convert_to_epub": args.convert_to_epub,
        "auto_create_dir": args.auto_create_dir,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    try:
        target = settings.to_target()
    except SenderError as exc:
        _notify(exc.user_message)
        return 1

    document = Document(
        raw_markdown=args.input_path.read_text(encoding="utf-8"),
        filename=args.input_path.name,
    )
    result = send_note(document, target, notifier=_notify)
    return 0 if result.ok else 1


def _handle_epub(args: argparse.Namespace) -> int:
    _verify_runtime_dependencies({"lxml.etree", "markdown"})
    from .common import epub_export_name
    from .package import write_epub

    source: Path = args.input_path
    out_path = Path(args.out_path) if args.out_path else source.with_name(epub_export_name(source.name))
    try:
        written = write_epub(source.read_text(encoding="utf-8"), source.name, out_path)
    except SenderError as exc:
        _notify(exc.user_message)
        return 1
    print(written)
    return 0


def _handle_config(args: argparse.Namespace) -> int:
    from .settings_form import apply_change

    settings = load_settings(args.settings)
    if args.config_command == "show":
        print(json.dumps(settings.model_dump(), indent=2))
        return 0

    try:
        apply_change(settings, args.key, args.value, on_save=lambda s: save_settings(s, args.settings))
    except SenderError as exc:
        _notify(exc.user_message)
        return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(debug=args.debug, log_dir=args.log_dir)

    if args.command == "send":
        return _handle_send(args)
    if args.command == "epub":
        return _handle_epub(args)
    if args.command == "config":
        return _handle_config(args)
    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    sys.exit(main())
