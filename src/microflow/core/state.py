"""Owned, path-addressable state container for steps and workflows."""
from __future__ import annotations

import re
import time
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any, ClassVar

import structlog

from microflow.core.constants import StateEvent
from microflow.core.events import StateEvents
from microflow.core.exceptions import InvalidStatePathError, StateFrozenError
from microflow.utils.clone import deep_clone

logger = structlog.get_logger(__name__)

# Matches ['quoted key'], ["quoted key"], [bare] and plain dot segments.
_PATH_TOKEN = re.compile(r"""\[(['"])(.*?)\1\]|\[([^\]]+)\]|([^.\[\]]+)""")

_MISSING = object()


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def parse_path(path: str) -> list[str]:
    """Split a dot/bracket path into its keys.

    ``"user.profile.name"`` → ``["user", "profile", "name"]``,
    ``"users[0].name"`` → ``["users", "0", "name"]``,
    ``"cfg['api-key']"`` → ``["cfg", "api-key"]``.
    """
    parts: list[str] = []
    for match in _PATH_TOKEN.finditer(path):
        quoted, bracketed, plain = match.group(2), match.group(3), match.group(4)
        if quoted is not None:
            parts.append(quoted)
        elif bracketed is not None:
            parts.append(bracketed.strip())
        else:
            parts.append(plain)
    return parts


def _lookup(container: Any, part: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(part, _MISSING)
    if isinstance(container, list) and part.isdigit():
        index = int(part)
        return container[index] if index < len(container) else _MISSING
    return _MISSING


def _assign(container: Any, part: str, value: Any) -> None:
    if isinstance(container, list) and part.isdigit():
        index = int(part)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[part] = value


class State:
    """A mutable mapping owned by exactly one step or workflow.

    Keys may be addressed with dot and bracket paths. A State is created from a
    default schema merged with caller overrides, and can be frozen, after which
    every write raises :class:`~microflow.core.exceptions.StateFrozenError` and
    leaves the stored values untouched. Frozen states remain readable and can
    still be deep-cloned. Successful writes are announced on :attr:`events`.

    Args:
        initial_state: Values merged over the defaults.
        defaults: Default schema for this owner. Falls back to
            :attr:`default_state`. The defaults are deep-cloned so owners never
            share nested containers.
    """

    default_state: ClassVar[dict[str, Any]] = {"id": None, "name": None}
    _clone_by_reference: ClassVar[bool] = True

    def __init__(
        self,
        initial_state: Mapping[str, Any] | None = None,
        *,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        base = defaults if defaults is not None else self.default_state
        self._state: dict[str, Any] = deep_clone(dict(base))
        if initial_state:
            self._state.update(initial_state)
        self._frozen = False
        self.events = StateEvents()

    def __repr__(self) -> str:
        return f"State(keys={len(self._state)}, frozen={self._frozen})"

    def __contains__(self, key: object) -> bool:
        return key in self._state

    def __getitem__(self, key: str) -> Any:
        return self._state[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._state)

    def __len__(self) -> int:
        return len(self._state)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, path: str | None = None, default: Any = None) -> Any:
        """Return the value at *path*, or *default* when it does not exist.

        An empty path, ``None`` or ``"*"`` returns the whole state mapping.
        A stored ``None`` is returned as ``None``, not replaced by *default*.
        """
        if not path or path == "*":
            return self.get_snapshot()

        current: Any = self._state
        for part in parse_path(path):
            current = _lookup(current, part)
            if current is _MISSING:
                return default
        return current

    def get_snapshot(self) -> Mapping[str, Any]:
        """Return the live state mapping (read-only once frozen)."""
        if self._frozen:
            return MappingProxyType(self._state)
        return self._state

    def get_snapshot_clone(self) -> dict[str, Any]:
        """Return a deep clone of the state; callables and engine objects are shared."""
        return deep_clone(self._state)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def set(self, path: str, value: Any) -> None:
        """Set *path* to *value*, creating intermediate containers as needed.

        A numeric next segment creates a list, anything else a dict.

        Raises:
            InvalidStatePathError: If *path* is empty or has no keys.
            StateFrozenError: If the state is frozen.
        """
        parts = self._require_path(path)
        self.require_writable(path)

        if path == "steps" and not self._state.get("suppress_step_warning"):
            logger.warning("state steps set directly", hint="use workflow step methods instead")

        current: Any = self._state
        for part, next_part in zip(parts, parts[1:]):
            child = _lookup(current, part)
            if not isinstance(child, (dict, list)):
                child = [] if next_part.isdigit() else {}
                _assign(current, part, child)
            current = child
        _assign(current, parts[-1], value)
        self.events.emit(StateEvent.SET, {"state": self, "path": path, "value": value})

    def delete(self, path: str) -> None:
        """Delete the value at *path*; missing intermediate keys are ignored."""
        parts = self._require_path(path)
        self.require_writable(path)

        current: Any = self._state
        for part in parts[:-1]:
            current = _lookup(current, part)
            if not isinstance(current, (dict, list)):
                return

        last = parts[-1]
        if isinstance(current, dict):
            if current.pop(last, _MISSING) is _MISSING:
                return
        elif isinstance(current, list) and last.isdigit() and int(last) < len(current):
            del current[int(last)]
        else:
            return
        self.events.emit(StateEvent.DELETED, {"state": self, "path": path})

    def merge(self, partial: Mapping[str, Any]) -> None:
        """Shallow-merge *partial* into the top level of the state."""
        self.require_writable("*")
        self._state.update(partial)
        self.events.emit(StateEvent.MERGE, {"state": self, "partial": partial})

    def freeze(self) -> None:
        if self._frozen:
            return
        self._frozen = True
        self.events.emit(StateEvent.FROZEN, {"state": self})

    def require_writable(self, path: str = "*") -> None:
        """Raise unless the state accepts writes.

        Owners that mutate containers held in the state in place (a workflow's
        step list, for example) call this before touching them.

        Raises:
            StateFrozenError: If the state is frozen.
        """
        if self._frozen:
            raise StateFrozenError(
                f"State is frozen; cannot modify {path!r}",
                details={"path": path},
            )

    def prepare(self, start_time_ms: int | None, should_freeze: bool = False) -> None:
        """Record ``execution_time_ms`` since *start_time_ms* and optionally freeze.

        *start_time_ms* must come from the same monotonic clock the engine uses
        for ``start_time`` values.
        """
        if start_time_ms is not None:
            self.set("execution_time_ms", _now_ms() - start_time_ms)
        if should_freeze:
            self.freeze()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @staticmethod
    def _require_path(path: str) -> list[str]:
        parts = parse_path(path) if path else []
        if not parts:
            raise InvalidStatePathError(f"The provided state path is invalid: {path!r}")
        return parts
