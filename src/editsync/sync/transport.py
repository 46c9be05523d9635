"""Remote save contract and an in-memory reference store.

Any transport works as long as ``save`` is awaitable and either returns a
mapping with the version the write was checked against::

    {"version": V}                   # required for a clean save
    {"version": V, "next_version": W} # version after the write (optional)
    {"version": V, "value": X}       # current remote value (used on conflict)

or raises one of ``ValidationError``, ``PermissionDeniedError``,
``ConflictError``, ``NetworkError``.  No HTTP specifics are assumed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from editsync.core.errors import NetworkError, PermissionDeniedError, ValidationError


class RemoteStore(Protocol):
    async def save(
        self,
        entity_id: str,
        field_id: str,
        value: Any,
        version: Any,
    ) -> Mapping[str, Any]: ...


class InMemoryRemoteStore:
    """Versioned field store with optimistic concurrency.

    Used by tests and demos.  Versions are integers incremented on every accepted write;
    unseeded fields are at version 0.  A stale version is answered with
    the current version and value instead of writing.

    Failure injection:
        ``fail_next(exc, times=n)`` raises *exc* on the next *n* calls;
        ``online = False`` raises ``NetworkError`` on every call;
        ``deny(entity_id, field_id)`` raises ``PermissionDeniedError``;
        ``validators[field_id]`` returns a list of messages to reject with.
    """

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self.online = True
        self.latency = 0.0
        self.validators: dict[str, Callable[[Any], list[str]]] = {}
        self._denied: set[tuple[str, str]] = set()
        self._failures: list[BaseException] = []

    def seed(self, entity_id: str, field_id: str, value: Any, version: int = 1) -> None:
        self.records[(entity_id, field_id)] = {"value": value, "version": version}

    def value_of(self, entity_id: str, field_id: str) -> Any:
        record = self.records.get((entity_id, field_id))
        return record["value"] if record else None

    def version_of(self, entity_id: str, field_id: str) -> int | None:
        record = self.records.get((entity_id, field_id))
        return record["version"] if record else None

    def deny(self, entity_id: str, field_id: str) -> None:
        self._denied.add((entity_id, field_id))

    def fail_next(self, exc: BaseException, times: int = 1) -> None:
        self._failures.extend([exc] * times)

    async def save(self, entity_id: str, field_id: str, value: Any, version: Any) -> dict[str, Any]:
        self.calls.append(
            {"entity_id": entity_id, "field_id": field_id, "value": value, "version": version}
        )
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            raise self._failures.pop(0)
        if not self.online:
            raise NetworkError("remote store unreachable")
        key = (entity_id, field_id)
        if key in self._denied:
            raise PermissionDeniedError(f"not allowed to write {entity_id}/{field_id}")
        validator = self.validators.get(field_id)
        if validator is not None:
            messages = validator(value)
            if messages:
                raise ValidationError(messages)

        record = self.records.get(key) or {"value": None, "version": 0}
        current = record["version"]
        if current != version:
            return {"version": current, "value": record["value"]}

        next_version = current + 1
        self.records[key] = {"value": value, "version": next_version}
        return {"version": current, "next_version": next_version}
