"""Gateway protocol and query types.

The Gateway is the managed backend the client talks to: table reads and
writes, the auth user endpoint, serverless functions, and a row-change
stream delivered over named channels. Everything above this module depends
only on the ``Gateway`` protocol, so the HTTP implementation in ``rest.py``
and the in-memory gateway used by tests are interchangeable.

Example:
    >>> rows = await gateway.select(
    ...     "notifications",
    ...     Query().eq("user_id", principal_id).order("created_at", desc=True).limit(50),
    ... )
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, Self, runtime_checkable


class ChangeOperation(StrEnum):
    """Row operation attached by the transport to every change notification."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChannelStatus(StrEnum):
    """Lifecycle status reported by a change channel."""

    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


@dataclass(frozen=True, slots=True)
class ChangeNotification:
    """One raw row change as delivered by a change channel.

    Attributes:
        table: Collection the row belongs to.
        operation: INSERT, UPDATE or DELETE, as tagged by the transport.
        new: Row after the change (empty for deletes).
        old: Row before the change (usually only the primary key).
        commit_timestamp: Server commit time, when the transport provides it.
    """

    table: str
    operation: ChangeOperation
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
    commit_timestamp: str | None = None

    @property
    def record(self) -> dict[str, Any]:
        """The row that describes the change: ``old`` for deletes, ``new`` otherwise."""
        return self.old if self.operation is ChangeOperation.DELETE else self.new


ChangeCallback = Callable[[ChangeNotification], None]
StatusCallback = Callable[[ChannelStatus, Exception | None], None]


# ──────────────────────────────────────────────────────────────
# Query builder
# ──────────────────────────────────────────────────────────────

_RESERVED = re.compile(r'[,()":\s]')


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if _RESERVED.search(text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True, slots=True)
class Condition:
    """A single ``column operator value`` predicate."""

    column: str
    op: str
    value: Any
    negate: bool = False

    def render(self) -> str:
        """Render the right-hand side of ``column=<rendered>``."""
        if self.op == "in":
            rendered = "in.(" + ",".join(_format_value(v) for v in self.value) + ")"
        elif self.op == "is":
            rendered = f"is.{_format_value(self.value)}"
        else:
            rendered = f"{self.op}.{_format_value(self.value)}"
        return f"not.{rendered}" if self.negate else rendered

    def matches(self, row: dict[str, Any]) -> bool:
        result = _evaluate(self.op, row.get(self.column), self.value)
        return not result if self.negate else result


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _evaluate(op: str, actual: Any, expected: Any) -> bool:
    if op == "is":
        return actual is expected or actual == expected
    if op == "in":
        return any(actual == v or str(actual) == str(v) for v in expected)
    if op == "ilike":
        if actual is None:
            return False
        pattern = re.escape(str(expected)).replace(r"\*", ".*").replace("%", ".*")
        return re.fullmatch(pattern, str(actual), flags=re.IGNORECASE | re.DOTALL) is not None
    if actual is None:
        return False
    if op == "eq":
        return actual == expected or str(actual) == str(expected)
    if op == "neq":
        return not (actual == expected or str(actual) == str(expected))
    if type(actual) is type(expected) or (_is_number(actual) and _is_number(expected)):
        left, right = actual, expected
    else:
        left, right = str(actual), str(expected)
    match op:
        case "gt":
            return left > right
        case "gte":
            return left >= right
        case "lt":
            return left < right
        case "lte":
            return left <= right
    raise ValueError(f"Unsupported filter operator: {op}")


@dataclass(slots=True)
class Query:
    """Fluent row filter, ordering and limit for a table read or write.

    Renders to PostgREST query parameters via ``to_params`` and can evaluate
    itself against a row via ``matches`` for client-side filtering.
    """

    conditions: list[Condition] = field(default_factory=list)
    any_of: list[list[Condition]] = field(default_factory=list)
    ordering: list[tuple[str, bool]] = field(default_factory=list)
    max_rows: int | None = None

    def _add(self, column: str, op: str, value: Any, *, negate: bool = False) -> Self:
        self.conditions.append(Condition(column, op, value, negate))
        return self

    def eq(self, column: str, value: Any) -> Self:
        return self._add(column, "eq", value)

    def neq(self, column: str, value: Any) -> Self:
        return self._add(column, "neq", value)

    def gt(self, column: str, value: Any) -> Self:
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> Self:
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> Self:
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> Self:
        return self._add(column, "lte", value)

    def in_(self, column: str, values: Iterable[Any]) -> Self:
        return self._add(column, "in", tuple(values))

    def is_(self, column: str, value: bool | None) -> Self:
        return self._add(column, "is", value)

    def not_is(self, column: str, value: bool | None) -> Self:
        return self._add(column, "is", value, negate=True)

    def ilike(self, column: str, pattern: str) -> Self:
        return self._add(column, "ilike", pattern)

    def or_(self, *conditions: Condition) -> Self:
        """Require at least one of ``conditions`` to hold."""
        self.any_of.append(list(conditions))
        return self

    def order(self, column: str, *, desc: bool = False) -> Self:
        self.ordering.append((column, desc))
        return self

    def limit(self, count: int) -> Self:
        self.max_rows = count
        return self

    def to_params(self) -> list[tuple[str, str]]:
        params = [(c.column, c.render()) for c in self.conditions]
        for group in self.any_of:
            inner = ",".join(f"{c.column}.{c.render()}" for c in group)
            params.append(("or", f"({inner})"))
        if self.ordering:
            params.append(
                ("order", ",".join(f"{col}.{'desc' if desc else 'asc'}" for col, desc in self.ordering))
            )
        if self.max_rows is not None:
            params.append(("limit", str(self.max_rows)))
        return params

    def matches(self, row: dict[str, Any]) -> bool:
        if not all(c.matches(row) for c in self.conditions):
            return False
        return all(any(c.matches(row) for c in group) for group in self.any_of)

    def apply(self, rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """Filter, order and limit ``rows`` the way the server would."""
        result = [row for row in rows if self.matches(row)]
        for column, desc in reversed(self.ordering):
            result.sort(
                key=lambda r, c=column: (r.get(c) is None, "" if r.get(c) is None else r.get(c)),
                reverse=desc,
            )
        if self.max_rows is not None:
            result = result[: self.max_rows]
        return result


def ilike_contains(column: str, term: str) -> Condition:
    """Case-insensitive substring condition for use inside ``Query.or_``."""
    return Condition(column, "ilike", f"*{term}*")


# ──────────────────────────────────────────────────────────────
# Protocols
# ──────────────────────────────────────────────────────────────


@runtime_checkable
class ChangeChannel(Protocol):
    """A named row-change subscription carrying any number of bindings."""

    name: str

    def on_change(
        self,
        table: str,
        operation: ChangeOperation,
        row_filter: str | None,
        callback: ChangeCallback,
    ) -> None:
        """Register a binding. Must be called before ``subscribe``."""
        ...

    async def subscribe(self, on_status: StatusCallback) -> None:
        """Open the channel; status changes are reported through ``on_status``."""
        ...

    async def close(self) -> None:
        """Tear the channel down. No callbacks fire afterwards."""
        ...


@runtime_checkable
class Gateway(Protocol):
    """Backend collaborator: table CRUD, auth, functions, change channels."""

    async def select(
        self,
        table: str,
        query: Query | None = None,
        *,
        columns: str = "*",
    ) -> list[dict[str, Any]]: ...

    async def count(self, table: str, query: Query | None = None) -> int: ...

    async def insert(
        self,
        table: str,
        values: dict[str, Any] | list[dict[str, Any]],
    ) -> list[dict[str, Any]]: ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        query: Query,
    ) -> list[dict[str, Any]]: ...

    async def delete(self, table: str, query: Query) -> list[dict[str, Any]]: ...

    async def invoke(self, function: str, body: dict[str, Any] | None = None) -> Any: ...

    async def get_user(self) -> dict[str, Any] | None:
        """Return the authenticated user for the current access token, or None."""
        ...

    def channel(self, name: str) -> ChangeChannel: ...
