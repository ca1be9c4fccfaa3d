"""Value normalization shared by the store, config loader, and job service."""

from __future__ import annotations

_BOOLEAN_TOKENS: dict[str, bool] = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


def normalize_optional_text(value: object) -> str | None:
    """Return `value` as stripped text, or `None` when it is missing or blank.

    Applied at every store boundary (read and write) so blank scripts, audio
    URLs, and messages are always represented as `None`.
    """

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_city_key(value: object) -> str | None:
    """Return the lowercase city key used to scope canonical stops."""

    text = normalize_optional_text(value)
    return text.lower() if text is not None else None


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse `true`/`false`, `1`/`0`, `yes`/`no`, or `on`/`off`; `None` when unrecognized."""

    if isinstance(value, bool):
        return value
    text = normalize_optional_text(value)
    if text is None:
        return None
    return _BOOLEAN_TOKENS.get(text.lower())
