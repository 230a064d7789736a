"""Environment store shared by every stage of a pipeline run.

The store is writable until the run starts and read-only afterwards, so
every stage observes the same configuration. A re-run builds a fresh
store with ``fresh()`` instead of mutating the frozen one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Mapping

from shipline.pipeline.exceptions import EnvironmentFrozenError, UnboundVariableError
from shipline.pipeline.validators import validate_key, validate_value

logger = logging.getLogger(__name__)


class EnvironmentStore(Mapping[str, str]):
    """Key/value configuration visible to all stages.

    Reading a missing key always raises ``UnboundVariableError``; there is
    no silent empty default.

    Args:
        initial: Bindings to start from.

    Examples:
        >>> env = EnvironmentStore({"IMAGE_NAME": "shop/site"})
        >>> env.set("CONTAINER_NAME", "shop")
        >>> env.freeze()
        >>> env.get("IMAGE_NAME")
        'shop/site'
        >>> env.set("HOST_PORT", "80")
        Traceback (most recent call last):
            ...
        shipline.pipeline.exceptions.EnvironmentFrozenError: Environment is frozen; cannot set 'HOST_PORT'
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._frozen = False
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self.set(key, value)

    @property
    def frozen(self) -> bool:
        """Whether the store has been frozen by a run."""
        return self._frozen

    def set(self, key: str, value: str) -> None:
        """Bind ``key`` to ``value``.

        Raises:
            EnvironmentFrozenError: If the run has already started.
            PipelineConfigError: If the key or value is invalid.
        """
        validate_key(key)
        validate_value(key, value)
        with self._lock:
            if self._frozen:
                raise EnvironmentFrozenError(f"Environment is frozen; cannot set {key!r}")
            self._values[key] = value

    def get(self, key: str) -> str:  # type: ignore[override]
        """Return the value bound to ``key``.

        Raises:
            UnboundVariableError: If the key was never set.
        """
        try:
            return self._values[key]
        except KeyError:
            raise UnboundVariableError(key) from None

    def require(self, keys: Iterable[str]) -> dict[str, str]:
        """Return the bindings for ``keys``, failing on the first missing one.

        Raises:
            UnboundVariableError: If any key was never set.
        """
        return {key: self.get(key) for key in keys}

    def freeze(self) -> None:
        """Make the store read-only. Idempotent."""
        with self._lock:
            self._frozen = True

    def fresh(self, overrides: Mapping[str, str] | None = None) -> EnvironmentStore:
        """Return a new, writable store with the same bindings plus ``overrides``."""
        return EnvironmentStore({**self._values, **(overrides or {})})

    def as_dict(self) -> dict[str, str]:
        """Return a copy of the bindings."""
        return dict(self._values)

    def __getitem__(self, key: str) -> str:
        return self.get(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"EnvironmentStore({sorted(self._values)}, {state})"


__all__ = [
    "EnvironmentStore",
]
