"""Scope-bounded credential vault.

Credentials are declared up front as ``id -> resolver`` and only resolved
inside ``CredentialVault.scope()``. Resolved values are held in
``bytearray`` buffers that are zeroed when the scope exits, on every exit
path. While a scope is open, ``CredentialVault.redact()`` masks the held
values in any text, which is how step output and log records are kept
free of secrets.

Resolvers follow the shape of the ``credentials`` section of a pipeline
file::

    credentials:
      REGISTRY_PASSWORD: {type: env, var: DOCKERHUB_TOKEN}
      DEPLOY_KEY: {type: file, path: ~/.config/shipline/deploy.key}
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from shipline.pipeline.exceptions import (
    CredentialInUseError,
    CredentialNotFoundError,
    PipelineConfigError,
)
from shipline.pipeline.validators import validate_key

logger = logging.getLogger(__name__)

#: Replacement text for redacted secrets.
REDACTED = "***"

#: A resolver returns the secret value when called.
CredentialResolver = Callable[[], "str | bytes"]

T = TypeVar("T")


# ============================================================================
# Resolvers
# ============================================================================


def from_env(var: str) -> CredentialResolver:
    """Resolve a credential from a process environment variable.

    Examples:
        >>> resolver = from_env("SHIPLINE_DOC_TOKEN")
        >>> os.environ["SHIPLINE_DOC_TOKEN"] = "s3cr3t"
        >>> resolver()
        's3cr3t'
    """

    def _resolve() -> str:
        value = os.environ.get(var)
        if value is None:
            raise LookupError(f"environment variable '{var}' is not set")
        return value

    return _resolve


def from_file(path: str | os.PathLike[str]) -> CredentialResolver:
    """Resolve a credential from the content of a file (trailing newline stripped)."""

    def _resolve() -> bytes:
        file_path = Path(path).expanduser()
        try:
            data = file_path.read_bytes()
        except OSError as exc:
            raise LookupError(f"cannot read '{file_path}': {exc.strerror}") from exc
        return data.rstrip(b"\r\n")

    return _resolve


def from_value(value: str | bytes) -> CredentialResolver:
    """Resolve a credential from a literal value (tests and programmatic use)."""
    return lambda: value


def parse_credential_source(credential_id: str, raw: Mapping[str, Any]) -> CredentialResolver:
    """Build a resolver from a ``credentials`` entry of a pipeline file.

    Args:
        credential_id: Credential identifier (for error messages).
        raw: Mapping with ``type`` (``env``, ``file`` or ``value``) and its field.

    Returns:
        Resolver for the credential.

    Raises:
        PipelineConfigError: If the entry is malformed.
    """
    if not isinstance(raw, Mapping):
        raise PipelineConfigError(f"Credential {credential_id!r} must be a mapping, got {type(raw).__name__}")

    source_type = raw.get("type", "env")
    if source_type == "env":
        var = raw.get("var")
        if not var:
            raise PipelineConfigError(f"Credential {credential_id!r}: env source requires 'var'")
        return from_env(str(var))
    if source_type == "file":
        path = raw.get("path")
        if not path:
            raise PipelineConfigError(f"Credential {credential_id!r}: file source requires 'path'")
        return from_file(str(path))
    if source_type == "value":
        if "value" not in raw:
            raise PipelineConfigError(f"Credential {credential_id!r}: value source requires 'value'")
        return from_value(str(raw["value"]))
    raise PipelineConfigError(
        f"Credential {credential_id!r}: unknown type {source_type!r} (expected 'env', 'file', or 'value')"
    )


def _scrub(buffer: bytearray) -> None:
    """Zero a buffer in place, then empty it."""
    for index in range(len(buffer)):
        buffer[index] = 0
    buffer.clear()


# ============================================================================
# View
# ============================================================================


class CredentialView(Mapping[str, str]):
    """Read-only view of the credentials held by one open scope.

    Reading a credential that is not part of the scope, or reading any
    credential once the scope has exited, raises ``CredentialNotFoundError``.
    """

    def __init__(self, buffers: Mapping[str, bytearray]) -> None:
        self._buffers = buffers
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the owning scope has exited."""
        return self._closed

    def _close(self) -> None:
        self._closed = True

    def __getitem__(self, credential_id: str) -> str:
        if self._closed:
            raise CredentialNotFoundError(credential_id, "is out of scope")
        try:
            buffer = self._buffers[credential_id]
        except KeyError:
            raise CredentialNotFoundError(credential_id, "is not held by this scope") from None
        return buffer.decode("utf-8")

    def __iter__(self) -> Iterator[str]:
        if self._closed:
            return iter(())
        return iter(self._buffers)

    def __len__(self) -> int:
        return 0 if self._closed else len(self._buffers)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"CredentialView({sorted(self._buffers) if not self._closed else []}, {state})"


#: View with no credentials, used for steps that declare none.
EMPTY_VIEW = CredentialView({})


# ============================================================================
# Vault
# ============================================================================


class CredentialVault:
    """Hold credential declarations and hand out scope-bounded views.

    No two open scopes may hold the same credential id at the same time.

    Args:
        resolvers: Mapping of credential id to resolver.

    Examples:
        >>> vault = CredentialVault({"REGISTRY_PASSWORD": from_value("hunter2")})
        >>> with vault.scope(["REGISTRY_PASSWORD"]) as creds:
        ...     vault.redact(f"login -p {creds['REGISTRY_PASSWORD']}")
        'login -p ***'
        >>> vault.active_ids
        frozenset()
    """

    def __init__(self, resolvers: Mapping[str, CredentialResolver] | None = None) -> None:
        self._resolvers: dict[str, CredentialResolver] = {}
        self._held: dict[str, bytearray] = {}
        self._lock = threading.Lock()
        for credential_id, resolver in (resolvers or {}).items():
            self.declare(credential_id, resolver)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]] | None) -> CredentialVault:
        """Build a vault from the ``credentials`` section of a pipeline file."""
        vault = cls()
        for credential_id, raw in (data or {}).items():
            vault.declare(credential_id, parse_credential_source(credential_id, raw))
        return vault

    def declare(self, credential_id: str, resolver: CredentialResolver) -> None:
        """Declare a credential id and how to resolve it."""
        validate_key(credential_id, "Credential id")
        self._resolvers[credential_id] = resolver

    @property
    def declared(self) -> frozenset[str]:
        """Ids the vault can resolve."""
        return frozenset(self._resolvers)

    @property
    def active_ids(self) -> frozenset[str]:
        """Ids currently held by an open scope."""
        with self._lock:
            return frozenset(self._held)

    def check_declared(self, ids: Iterable[str]) -> None:
        """Fail on the first id that is not declared.

        Raises:
            CredentialNotFoundError: If an id is not declared.
        """
        for credential_id in ids:
            if credential_id not in self._resolvers:
                raise CredentialNotFoundError(credential_id)

    @contextmanager
    def scope(self, ids: Iterable[str]) -> Iterator[CredentialView]:
        """Resolve ``ids`` for the duration of a ``with`` block.

        Args:
            ids: Credential ids to resolve.

        Yields:
            Read-only view of the resolved credentials.

        Raises:
            CredentialNotFoundError: If an id is undeclared or cannot be resolved.
            CredentialInUseError: If an id is held by another open scope.
        """
        wanted = tuple(dict.fromkeys(ids))
        self.check_declared(wanted)

        with self._lock:
            for credential_id in wanted:
                if credential_id in self._held:
                    raise CredentialInUseError(credential_id)
            buffers = {credential_id: bytearray() for credential_id in wanted}
            self._held.update(buffers)

        view = CredentialView(buffers)
        try:
            for credential_id in wanted:
                buffers[credential_id].extend(self._resolve(credential_id))
            logger.debug("Credential scope opened for %s", ", ".join(wanted) or "(none)")
            yield view
        finally:
            view._close()  # pylint: disable=protected-access
            with self._lock:
                for credential_id, buffer in buffers.items():
                    _scrub(buffer)
                    self._held.pop(credential_id, None)
            logger.debug("Credential scope closed for %s", ", ".join(wanted) or "(none)")

    def with_scope(self, ids: Iterable[str], body: Callable[[CredentialView], T]) -> T:
        """Call ``body`` with a view of ``ids`` and return its result.

        The credentials are erased when ``body`` returns or raises.
        """
        with self.scope(ids) as view:
            return body(view)

    def redact(self, text: str) -> str:
        """Mask every currently held secret value in ``text``."""
        if not text:
            return text
        with self._lock:
            secrets = [buffer.decode("utf-8", errors="ignore") for buffer in self._held.values()]
        # Longest first so a secret containing another one is fully masked
        for secret in sorted(secrets, key=len, reverse=True):
            if secret:
                text = text.replace(secret, REDACTED)
        return text

    def _resolve(self, credential_id: str) -> bytes:
        resolver = self._resolvers[credential_id]
        try:
            value = resolver()
        except LookupError as exc:
            raise CredentialNotFoundError(credential_id, f"could not be resolved: {exc}") from exc
        if isinstance(value, str):
            return value.encode("utf-8")
        data = bytes(value)
        try:
            data.decode("utf-8")
        except UnicodeDecodeError:
            raise CredentialNotFoundError(credential_id, "is not valid UTF-8") from None
        return data

    def __repr__(self) -> str:
        return f"CredentialVault(declared={sorted(self._resolvers)})"


__all__ = [
    "EMPTY_VIEW",
    "REDACTED",
    "CredentialResolver",
    "CredentialVault",
    "CredentialView",
    "from_env",
    "from_file",
    "from_value",
    "parse_credential_source",
]
