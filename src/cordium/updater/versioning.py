from __future__ import annotations

import re

_NUMERIC = re.compile(r"\d+")


def is_newer(current: object, candidate: object) -> bool:
    """Return True when ``candidate`` is strictly newer than ``current``.

    Anything after the first ``-`` is ignored on both sides, missing trailing
    components count as 0 and so do non-numeric ones. Input that cannot be
    compared yields False.
    """
    if not isinstance(current, str) or not isinstance(candidate, str):
        return False
    current_parts = _components(current)
    candidate_parts = _components(candidate)
    for index in range(max(len(current_parts), len(candidate_parts))):
        current_part = current_parts[index] if index < len(current_parts) else 0
        candidate_part = candidate_parts[index] if index < len(candidate_parts) else 0
        if candidate_part > current_part:
            return True
        if candidate_part < current_part:
            return False
    return False


def strip_version_prefix(tag: str) -> str:
    text = str(tag or "").strip()
    if text[:1] in {"v", "V"}:
        return text[1:]
    return text


def _components(version: str) -> list[int]:
    core = version.split("-", 1)[0]
    return [int(piece) if _NUMERIC.fullmatch(piece) else 0 for piece in core.split(".")]
