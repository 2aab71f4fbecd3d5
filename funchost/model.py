"""The record kept for every registered function."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"\.(\d+)")
_TEXT_FIELDS = (
    ("id", "id"),
    ("version", "version"),
    ("name", "name"),
    ("bin_path", "binPath"),
    ("wasm_path", "wasmPath"),
    ("description", "description"),
)


def _format_time(moment: datetime) -> str:
    text = moment.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _parse_time(text: str) -> datetime:
    text = text.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(
        lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1
    )
    return datetime.fromisoformat(text)


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class Function:
    """A deployed function and where its build artefacts live."""

    id: str
    version: str
    name: str
    bin_path: str
    wasm_path: str = ""
    description: str = ""
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, with the keys in their stored order."""
        data: dict[str, Any] = {
            key: getattr(self, attr) for attr, key in _TEXT_FIELDS
        }
        data["created_at"] = _format_time(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Function:
        """Build a record from its JSON form; absent fields take empty values."""
        values: dict[str, Any] = {}
        for attr, key in _TEXT_FIELDS:
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise TypeError(f"field {key!r} must be a string")
            values[attr] = value
        stamp = data.get("created_at")
        if stamp is None:
            values["created_at"] = ZERO_TIME
        elif isinstance(stamp, str):
            values["created_at"] = _parse_time(stamp)
        else:
            raise TypeError("field 'created_at' must be a string")
        return cls(**values)