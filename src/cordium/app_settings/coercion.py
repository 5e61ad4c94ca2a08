from __future__ import annotations

from urllib.parse import urlsplit

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off", ""})


def coerce_bool(value, default: bool = False) -> bool:
    """Read a flag from env text or a stored value; unknown words give ``default``."""
    if isinstance(value, (bool, int, float)):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def coerce_int_clamped(value: object, default: int, min_value: int, max_value: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        number = default
    return min(max_value, max(min_value, number))


def sanitize_release_url(value: object, default: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return default
    try:
        parts = urlsplit(raw)
    except ValueError:
        return default
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return default
    return raw


def normalize_package_extension(value: object, default: str) -> str:
    text = str(value or "").strip().lower().lstrip(".")
    if not text or not text.isalnum():
        return default
    return f".{text}"
