"""Typed field access over decoded change event payloads."""

from __future__ import annotations

import json
from typing import Any, Iterator, Mapping, Optional, Union

from ..constants import EVENT_SOURCE_TYPE_KEY


class InvalidChangeEventError(Exception):
    """Raised when a change event lacks a required field or cannot be decoded."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        source_type: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.source_type = source_type


class ChangeEventConvertError(InvalidChangeEventError):
    """Raised when a field is present but holds a value of the wrong type."""


def _describe(key: str, source_type: Optional[str]) -> str:
    if source_type:
        return f"{key!r} ({source_type} change event)"
    return repr(key)


class ChangeEventPayload(Mapping[str, Any]):
    """Read-only view over a change event with required/optional field lookups."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = dict(data)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "ChangeEventPayload":
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidChangeEventError(
                    f"change event is not valid UTF-8: {exc}"
                ) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidChangeEventError(
                f"change event is not valid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise InvalidChangeEventError(
                f"change event must be a JSON object, got {type(data).__name__}"
            )
        return cls(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ChangeEventPayload({self._data!r})"

    @property
    def source_type(self) -> Optional[str]:
        value = self.get_string(EVENT_SOURCE_TYPE_KEY, required=False)
        if value is None:
            return None
        return value.strip().lower() or None

    # ------------------------------------------------------------------
    def _lookup(self, key: str, required: bool, source_type: Optional[str]) -> Any:
        value = self._data.get(key)
        if value is None and required:
            raise InvalidChangeEventError(
                f"Required key {_describe(key, source_type)} not found in change event",
                field=key,
                source_type=source_type,
            )
        return value

    def get_long(
        self,
        key: str,
        *,
        required: bool = False,
        source_type: Optional[str] = None,
    ) -> Optional[int]:
        value = self._lookup(key, required, source_type)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ChangeEventConvertError(
                f"Unable to convert boolean field {_describe(key, source_type)} to long",
                field=key,
                source_type=source_type,
            )
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise ChangeEventConvertError(
            f"Unable to convert field {_describe(key, source_type)} "
            f"with value {value!r} to long",
            field=key,
            source_type=source_type,
        )

    def get_string(
        self,
        key: str,
        *,
        required: bool = False,
        source_type: Optional[str] = None,
    ) -> Optional[str]:
        value = self._lookup(key, required, source_type)
        if value is None:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ChangeEventConvertError(
            f"Unable to convert field {_describe(key, source_type)} "
            f"with value {value!r} to string",
            field=key,
            source_type=source_type,
        )


def as_payload(event: Mapping[str, Any]) -> ChangeEventPayload:
    if isinstance(event, ChangeEventPayload):
        return event
    return ChangeEventPayload(event)


__all__ = [
    "ChangeEventConvertError",
    "ChangeEventPayload",
    "InvalidChangeEventError",
    "as_payload",
]
