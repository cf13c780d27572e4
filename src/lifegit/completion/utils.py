"""Helpers for cleaning up model output."""

from __future__ import annotations

import re

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?")


def extract_json_object(text: str) -> str:
    """Return the outermost ``{...}`` span of ``text``.

    Markdown code fences and any prose before the first ``{`` or after the
    last ``}`` are discarded. Raises ``ValueError`` when no object is present.
    """

    cleaned = _FENCE_PATTERN.sub("", text).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ValueError("Completion did not contain a JSON object")
    return cleaned[start : end + 1]


__all__ = ["extract_json_object"]
