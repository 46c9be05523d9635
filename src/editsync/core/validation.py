"""Validation gate: the single source of truth for whether a value may be saved.

A gate is an ordered pipeline of rules.  A rule receives the (possibly
already transformed) value and returns either ``Accepted(value)``, to pass a
value (transformed or not) to the next rule, or ``Rejected(reasons)``.
Evaluation stops at the first rejection.

The gate is pure: no I/O, no state.  The same gate interprets errors
returned by the server (``from_server_errors``), so locally and remotely
rejected values produce identical ``Rejected`` results.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from editsync.core.errors import ValidationError


@dataclass(frozen=True)
class Accepted:
    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reasons: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return False

    def to_error(self) -> ValidationError:
        return ValidationError(self.reasons)


Outcome = Accepted | Rejected
Rule = Callable[[Any], Outcome]


def _dedupe(reasons: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for reason in reasons:
        if reason and reason not in seen:
            seen.add(reason)
            result.append(reason)
    return tuple(result)


def reject(*reasons: str) -> Rejected:
    """Build a ``Rejected`` with deduplicated, order-preserving reasons."""
    return Rejected(_dedupe(reasons))


class ValidationGate:
    """Ordered, side-effect-free rule pipeline."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)

    def __call__(self, value: Any) -> Outcome:
        return self.check(value)

    def check(self, value: Any) -> Outcome:
        current = value
        for rule in self._rules:
            outcome = rule(current)
            if isinstance(outcome, Rejected):
                return reject(*outcome.reasons)
            current = outcome.value
        return Accepted(current)

    def then(self, *rules: Rule) -> ValidationGate:
        """Return a new gate with *rules* appended."""
        return ValidationGate(self._rules + rules)

    def from_server_errors(self, errors: object) -> Rejected:
        """Map server-returned validation errors into the gate's ``Rejected`` shape.

        Accepts a string, a list of strings, a list of ``{"message": ...}``
        dicts, a ``{"errors": [...]}`` payload, or a ``ValidationError``.
        """
        messages = _server_messages(errors)
        return reject(*messages) if messages else reject("Rejected by server")


def _server_messages(errors: object) -> list[str]:
    if errors is None:
        return []
    if isinstance(errors, ValidationError):
        return list(errors.reasons)
    if isinstance(errors, str):
        return [errors]
    if isinstance(errors, dict):
        if "errors" in errors:
            return _server_messages(errors["errors"])
        message = errors.get("message") or errors.get("detail")
        return [str(message)] if message else []
    if isinstance(errors, (list, tuple)):
        messages: list[str] = []
        for item in errors:
            messages.extend(_server_messages(item))
        return messages
    return [str(errors)]


# ---------------------------------------------------------------------------
# Stock rules
# ---------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0)


def required(message: str = "This field is required") -> Rule:
    def _rule(value: Any) -> Outcome:
        return reject(message) if _is_empty(value) else Accepted(value)

    return _rule


def strip() -> Rule:
    """Trim surrounding whitespace from string values."""

    def _rule(value: Any) -> Outcome:
        return Accepted(value.strip() if isinstance(value, str) else value)

    return _rule


def min_length(n: int, message: str | None = None) -> Rule:
    def _rule(value: Any) -> Outcome:
        if value is not None and len(value) < n:
            return reject(message or f"Must be at least {n} characters")
        return Accepted(value)

    return _rule


def max_length(n: int, message: str | None = None) -> Rule:
    def _rule(value: Any) -> Outcome:
        if value is not None and len(value) > n:
            return reject(message or f"Must be at most {n} characters")
        return Accepted(value)

    return _rule


def pattern(regex: str, message: str | None = None) -> Rule:
    compiled = re.compile(regex)

    def _rule(value: Any) -> Outcome:
        if value is None or value == "":
            return Accepted(value)
        if not isinstance(value, str) or not compiled.fullmatch(value):
            return reject(message or "Invalid format")
        return Accepted(value)

    return _rule


def one_of(choices: Iterable[Any], message: str | None = None) -> Rule:
    allowed = tuple(choices)

    def _rule(value: Any) -> Outcome:
        if value not in allowed:
            return reject(message or f"Must be one of: {', '.join(map(str, allowed))}")
        return Accepted(value)

    return _rule


def coerce(tp: Any, message: str | None = None) -> Rule:
    """Validate and coerce a value to *tp* using pydantic (e.g. ``int``, ``date``)."""
    adapter = TypeAdapter(tp)

    def _rule(value: Any) -> Outcome:
        try:
            return Accepted(adapter.validate_python(value))
        except PydanticValidationError as exc:
            if message:
                return reject(message)
            return reject(*(err["msg"] for err in exc.errors()))

    return _rule


def predicate(fn: Callable[[Any], bool], message: str) -> Rule:
    """Wrap a boolean check as a rule."""

    def _rule(value: Any) -> Outcome:
        return Accepted(value) if fn(value) else reject(message)

    return _rule


ACCEPT_ALL = ValidationGate()
