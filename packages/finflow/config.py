"""Environment-driven settings.

Values are read at call time so tests can ``monkeypatch.setenv`` freely. The
CLI loads a local ``.env`` (without overriding the process environment)
before any of these run.
"""

from __future__ import annotations

import os

from .logging_setup import get_logger

logger = get_logger("finflow.config")

DEFAULT_EXTRACTION_TIMEOUT_SEC = 120.0
DEFAULT_OCR_DPI = 300
DEFAULT_OCR_LANG = "eng"
DEFAULT_TRANSFER_WINDOW_HOURS = 48


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %s", name, raw, default)
        return default
    return value


def extraction_timeout_sec() -> float:
    return _env_number("FINFLOW_EXTRACTION_TIMEOUT_SEC", DEFAULT_EXTRACTION_TIMEOUT_SEC, float)


def ocr_dpi() -> int:
    return _env_number("FINFLOW_OCR_DPI", DEFAULT_OCR_DPI, int)


def ocr_lang() -> str:
    return (os.getenv("FINFLOW_OCR_LANG") or "").strip() or DEFAULT_OCR_LANG
