"""Custom metadata fields attached by test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pgreport.listener import ReportingListener


class CustomFieldStore:
    """Name to value mapping of custom fields."""

    def __init__(self) -> None:
        self._fields: dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def set(self, name: str, value: str, rewrite: bool = True) -> bool:
        """Store `value` under `name`.

        With ``rewrite=False`` only an existing field is updated; an absent
        field is refused and False is returned.
        """
        if rewrite or name in self._fields:
            self._fields[name] = value
            return True
        return False

    def get(self, name: str, default: str = "") -> str:
        return self._fields.get(name, default)

    def remove(self, name: str) -> bool:
        """Drop `name`; returns whether it was present."""
        return self._fields.pop(name, None) is not None

    def clear(self) -> None:
        self._fields.clear()

    def as_dict(self) -> dict[str, str]:
        return dict(self._fields)


class ReportingLink:
    """Custom-field access for test fixtures.

    Keeps a local store that works with reporting disabled and mirrors
    every change into the listener when one is bound. Reads prefer the
    listener's view.
    """

    def __init__(self, listener: ReportingListener | None = None) -> None:
        self._listener = listener
        self._local = CustomFieldStore()

    @property
    def is_bound(self) -> bool:
        return self._listener is not None

    def set_custom_field(self, name: str, value: str, rewrite: bool = True) -> bool:
        if self._listener is not None and not self._listener.set_custom_field(name, value, rewrite):
            return False
        return self._local.set(name, value, rewrite)

    def get_custom_field(self, name: str, default: str = "") -> str:
        if self._listener is not None:
            return self._listener.get_custom_field(name, default)
        return self._local.get(name, default)

    def remove_custom_field(self, name: str) -> bool:
        if self._listener is not None:
            self._listener.remove_custom_field(name)
        return self._local.remove(name)

    def clear_custom_fields(self) -> None:
        if self._listener is not None:
            self._listener.clear_custom_fields()
        self._local.clear()
