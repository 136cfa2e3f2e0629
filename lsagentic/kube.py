"""In-memory object store and helpers for unstructured Kubernetes-style objects."""

from __future__ import annotations

import copy
import itertools
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

MAX_NAME_LENGTH = 63


class ApiError(Exception):
    """Raised when an API operation fails."""


class NotFoundError(ApiError):
    """Raised when the requested object does not exist."""


class AlreadyExistsError(ApiError):
    """Raised when creating an object whose name is already taken."""


def truncate_k8s_name(name: str) -> str:
    """Shorten a name to the Kubernetes limit, dropping trailing dashes."""
    return name[:MAX_NAME_LENGTH].rstrip("-")


def nested_get(obj: Mapping[str, Any], *args: str) -> Any:
    """Return the value at the given key path, or None when a key is missing.

    Raises TypeError when an intermediate value is not a mapping.
    """
    current: Any = obj
    for depth, key in enumerate(args):
        if not isinstance(current, Mapping):
            path = ".".join(args[:depth])
            raise TypeError(
                f"{path} is of type {type(current).__name__}, expected a mapping"
            )
        if key not in current:
            return None
        current = current[key]
    return current


def set_nested(obj: dict[str, Any], value: Any, *args: str) -> None:
    """Set a value at the given key path, creating intermediate mappings.

    Raises TypeError when an existing intermediate value is not a mapping.
    """
    if not args:
        raise ValueError("set_nested needs at least one key")
    current = obj
    for depth, key in enumerate(args[:-1]):
        child = current.get(key)
        if child is None:
            child = {}
            current[key] = child
        elif not isinstance(child, dict):
            path = ".".join(args[: depth + 1])
            raise TypeError(
                f"{path} is of type {type(child).__name__}, expected a mapping"
            )
        current = child
    current[args[-1]] = value


def _identity(obj: Mapping[str, Any]) -> tuple[str, str, str]:
    kind = obj.get("kind") or ""
    metadata = obj.get("metadata") or {}
    name = metadata.get("name") or ""
    namespace = metadata.get("namespace") or ""
    if not kind:
        raise ApiError("object has no kind")
    if not name:
        raise ApiError(f"{kind} has no name")
    return kind, namespace, name


def _labels_match(obj: Mapping[str, Any], wanted: Mapping[str, str]) -> bool:
    labels = (obj.get("metadata") or {}).get("labels") or {}
    return all(labels.get(key) == value for key, value in wanted.items())


class MemoryClient:
    """A small in-memory API client holding unstructured objects.

    Kinds listed in ``status_subresources`` behave like resources with a
    status subresource: ``create`` drops their status, and only
    ``patch_status`` writes it.
    """

    def __init__(
        self,
        objects: Iterable[Mapping[str, Any]] = (),
        status_subresources: Iterable[str] = (),
    ) -> None:
        self._store: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._versions = itertools.count(1)
        self._status_kinds = frozenset(status_subresources)
        for obj in objects:
            stored = copy.deepcopy(dict(obj))
            self._stamp(stored)
            self._store[_identity(stored)] = stored

    def _stamp(self, obj: dict[str, Any]) -> None:
        metadata = obj.setdefault("metadata", {})
        metadata["resourceVersion"] = str(next(self._versions))
        metadata.setdefault("uid", str(uuid.uuid4()))

    def get(self, kind: str, name: str, namespace: str = "") -> dict[str, Any]:
        """Return a copy of the stored object."""
        try:
            stored = self._store[(kind, namespace or "", name)]
        except KeyError:
            raise NotFoundError(f'{kind} "{name}" not found') from None
        return copy.deepcopy(stored)

    def create(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        """Store a new object and return a copy of what was stored."""
        key = _identity(obj)
        if key in self._store:
            raise AlreadyExistsError(f'{key[0]} "{key[2]}" already exists')
        stored = copy.deepcopy(dict(obj))
        if key[0] in self._status_kinds:
            stored.pop("status", None)
        self._stamp(stored)
        self._store[key] = stored
        return copy.deepcopy(stored)

    def delete(self, kind: str, name: str, namespace: str = "") -> None:
        """Remove an object."""
        try:
            del self._store[(kind, namespace or "", name)]
        except KeyError:
            raise NotFoundError(f'{kind} "{name}" not found') from None

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return copies of objects of a kind, filtered by namespace and labels."""
        wanted = labels or {}
        return [
            copy.deepcopy(stored)
            for (stored_kind, stored_ns, _), stored in self._store.items()
            if stored_kind == kind
            and (namespace is None or stored_ns == namespace)
            and _labels_match(stored, wanted)
        ]

    def patch_status(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        """Write the status of an existing object and return the result."""
        key = _identity(obj)
        try:
            stored = self._store[key]
        except KeyError:
            raise NotFoundError(f'{key[0]} "{key[2]}" not found') from None
        stored["status"] = copy.deepcopy(obj.get("status") or {})
        stored["metadata"]["resourceVersion"] = str(next(self._versions))
        return copy.deepcopy(stored)