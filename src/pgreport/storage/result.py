"""Shared ownership of per-query result objects."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any


Releaser = Callable[[Any], None]


class _SharedCount:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value = 1


class ResultHandle:
    """Reference-counted holder for an opaque result object.

    Copies made with `copy` share the same underlying result. The releaser
    runs exactly once, when the last holder lets go. An empty handle (no raw
    result) is the failure marker returned by `ConnectionManager.query`.

    Usage:
        with manager.query(sql) as result:
            if result:
                value = manager.value(result)
    """

    def __init__(self, raw: Any = None, releaser: Releaser | None = None) -> None:
        self._raw = raw
        self._releaser = releaser
        self._count = _SharedCount() if raw is not None else None

    def __enter__(self) -> ResultHandle:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __bool__(self) -> bool:
        return self._raw is not None

    def __copy__(self) -> ResultHandle:
        return self.copy()

    def __del__(self) -> None:
        self.release()

    def __repr__(self) -> str:
        refs = self._count.value if self._count else 0
        return f"ResultHandle(raw={self._raw!r}, refs={refs})"

    @property
    def refs(self) -> int:
        """Number of live holders sharing the result."""
        return self._count.value if self._count else 0

    def get(self) -> Any:
        """Return the raw result, or None for an empty handle."""
        return self._raw

    def copy(self) -> ResultHandle:
        """Return another holder of the same result."""
        other = ResultHandle.__new__(ResultHandle)
        other._raw = self._raw
        other._releaser = self._releaser
        other._count = self._count
        if self._count is not None:
            self._count.value += 1
        return other

    def reset(self, raw: Any = None) -> None:
        """Drop the current result and adopt `raw` with a fresh count."""
        if raw is self._raw:
            return
        self.release()
        self._raw = raw
        self._count = _SharedCount() if raw is not None else None

    def release(self) -> None:
        """Give up this holder's share; the last share frees the result."""
        raw, count = self._raw, self._count
        self._raw = None
        self._count = None
        if raw is None or count is None:
            return

        count.value -= 1
        if count.value == 0 and self._releaser is not None:
            self._releaser(raw)
