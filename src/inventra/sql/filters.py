"""
Filter composition: turning an untrusted filter dict into a QueryPlan.

A FilterSchema is a declared, ordered list of rules. Each rule owns one or
more logical keys and knows how to compile a value for those keys into a
predicate over a vetted SQL expression. Caller values only ever reach the
query as bound %s parameters; caller keys are only ever used to look up a
rule. Keys with no rule are ignored.

Predicates are emitted in this order:
    1. the schema's static system predicates
    2. server-side system predicates passed to build()
    3. one predicate per rule, in declaration order

so that identical input always produces identical SQL text and params.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Sequence
from uuid import UUID

from inventra.errors import ValidationError
from inventra.sql.ident import is_safe_ident

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ARRAY_CASTS = frozenset({"uuid[]", "text[]", "integer[]", "bigint[]", "date[]"})
_SCALAR_TYPES = (str, int, float, Decimal, UUID)


class MatchMode(Enum):
    PARTIAL = "partial"  # ILIKE '%value%'
    EXACT = "exact"  # = value
    DAY = "day"  # whole calendar day, half-open


@dataclass(frozen=True)
class QueryPlan:
    """A WHERE clause and the values for its placeholders, in order."""

    where_clause: str
    params: list = field(default_factory=list)


# =============================================================================
# Value helpers
# =============================================================================


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so caller text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: Any) -> str:
    return f"%{escape_like(str(value).strip())}%"


def parse_day(key: str, value: Any) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _DATE_ONLY_RE.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(
        f"Filter '{key}' must be a calendar date (YYYY-MM-DD)", {"key": key}
    )


def parse_bound(key: str, value: Any) -> date | datetime:
    """A date-only bound stays a date; anything else must be an ISO timestamp."""
    if isinstance(value, (date, datetime)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _DATE_ONLY_RE.match(text):
            return parse_day(key, text)
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    raise ValidationError(
        f"Filter '{key}' must be an ISO date or timestamp", {"key": key}
    )


def require_scalar(key: str, value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, _SCALAR_TYPES):
        raise ValidationError(f"Filter '{key}' must be a single value", {"key": key})
    return value


def require_list(key: str, value: Any) -> list:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError(f"Filter '{key}' must be a list of values", {"key": key})
    items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
    for item in items:
        require_scalar(key, item)
    return items


def _sql_literal(value: str) -> str:
    # Only used for discriminator values declared in code.
    if not is_safe_ident(value):
        raise ValueError(f"Invalid discriminator literal: {value!r}")
    return f"'{value}'"


# =============================================================================
# Accumulator
# =============================================================================


class Conditions:
    """Collects predicates and their parameters, keeping them aligned."""

    def __init__(self):
        self._parts: list[str] = []
        self._params: list[Any] = []

    def add(self, sql: str, *values: Any) -> None:
        if sql.count("%s") != len(values):
            raise ValueError(f"Placeholder/value mismatch in predicate: {sql}")
        self._parts.append(sql)
        self._params.extend(values)

    def plan(self) -> QueryPlan:
        where = " AND ".join(self._parts) if self._parts else "TRUE"
        return QueryPlan(where, list(self._params))


# =============================================================================
# Rules
# =============================================================================


class Rule:
    keys: tuple[str, ...] = ()

    def apply(self, filters: Mapping, conditions: Conditions) -> None:
        raise NotImplementedError


class TextField(Rule):
    """A string column, partial (default) or exact match."""

    def __init__(self, key: str, column: str, match: MatchMode = MatchMode.PARTIAL):
        if match not in (MatchMode.PARTIAL, MatchMode.EXACT):
            raise ValueError(f"TextField {key} supports PARTIAL or EXACT matching")
        self.keys = (key,)
        self.column = column
        self.match = match

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        if self.match is MatchMode.EXACT:
            if isinstance(value, (list, tuple, set, frozenset)):
                conditions.add(f"{self.column} = ANY(%s)", require_list(key, value))
            else:
                conditions.add(f"{self.column} = %s", require_scalar(key, value))
            return
        conditions.add(f"{self.column} ILIKE %s", contains_pattern(require_scalar(key, value)))


class AnyField(Rule):
    """A list of values matched with `= ANY`."""

    def __init__(self, key: str, column: str, cast: str | None = None):
        if cast is not None and cast not in _ARRAY_CASTS:
            raise ValueError(f"Unsupported array cast: {cast}")
        self.keys = (key,)
        self.column = column
        self.cast = cast

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        placeholder = f"%s::{self.cast}" if self.cast else "%s"
        conditions.add(f"{self.column} = ANY({placeholder})", require_list(key, value))


class DayField(Rule):
    """A single calendar day, compiled to a half-open timestamp range."""

    def __init__(self, key: str, column: str):
        self.keys = (key,)
        self.column = column

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        day = parse_day(key, value)
        conditions.add(
            f"({self.column} >= %s AND {self.column} < %s)", day, day + timedelta(days=1)
        )


class RangeField(Rule):
    """
    An after/before pair over one column. Either key may be None for a
    one-sided bound.

    A date-only `before` bound includes that whole day, so it becomes an
    exclusive bound on the following day.
    """

    def __init__(self, after_key: str | None, before_key: str | None, column: str):
        if not after_key and not before_key:
            raise ValueError(f"RangeField on {column} needs at least one key")
        self.after_key = after_key
        self.before_key = before_key
        self.keys = tuple(key for key in (after_key, before_key) if key)
        self.column = column

    def apply(self, filters, conditions):
        after_key, before_key = self.after_key, self.before_key
        after = filters.get(after_key) if after_key else None
        before = filters.get(before_key) if before_key else None
        if not is_blank(after):
            conditions.add(f"{self.column} >= %s", parse_bound(after_key, after))
        if not is_blank(before):
            bound = parse_bound(before_key, before)
            if isinstance(bound, datetime):
                conditions.add(f"{self.column} <= %s", bound)
            else:
                conditions.add(f"{self.column} < %s", bound + timedelta(days=1))


class WithinPeriodField(Rule):
    """
    A point in time that must fall inside [start, end]. A NULL end column
    means the period is open-ended.
    """

    def __init__(self, key: str, start_column: str, end_column: str):
        self.keys = (key,)
        self.start_column = start_column
        self.end_column = end_column

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        moment = parse_bound(key, value)
        conditions.add(
            f"({self.start_column} <= %s AND "
            f"({self.end_column} IS NULL OR {self.end_column} >= %s))",
            moment,
            moment,
        )


class ExistsField(Rule):
    """
    A partial text match evaluated in a correlated subquery, so a
    one-to-many relation can be filtered without fanning out the rows.

    `subquery` is a vetted `SELECT 1 FROM ... WHERE <correlation>`; the
    match on `column` is appended to it.
    """

    def __init__(self, key: str, subquery: str, column: str):
        self.keys = (key,)
        self.subquery = subquery
        self.column = column

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        conditions.add(
            f"EXISTS ({self.subquery} AND {self.column} ILIKE %s)",
            contains_pattern(require_scalar(key, value)),
        )


class FlagField(Rule):
    """A boolean that switches a vetted predicate on (and optionally another off)."""

    def __init__(self, key: str, when_true: str, when_false: str | None = None):
        self.keys = (key,)
        self.when_true = when_true
        self.when_false = when_false

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            value = value.strip().lower() == "true"
        if not isinstance(value, bool):
            raise ValidationError(f"Filter '{key}' must be a boolean", {"key": key})
        predicate = self.when_true if value else self.when_false
        if predicate:
            conditions.add(predicate)


class KeywordField(Rule):
    """One search term matched against several columns, any of which may hit."""

    def __init__(self, key: str, columns: Sequence[str]):
        if not columns:
            raise ValueError(f"KeywordField {key} needs at least one column")
        self.keys = (key,)
        self.columns = tuple(columns)

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return
        pattern = contains_pattern(require_scalar(key, value))
        group = " OR ".join(f"{column} ILIKE %s" for column in self.columns)
        conditions.add(f"({group})", *([pattern] * len(self.columns)))


class PolymorphicField(Rule):
    """
    One logical filter over rows of several sub-types.

    Each branch is guarded by the discriminator so a value is only compared
    against the column that belongs to the row's own type:
        ((br.batch_type = 'product' AND pb.lot_number ILIKE %s)
         OR (br.batch_type = 'packaging_material' AND pmb.lot_number ILIKE %s))
    """

    def __init__(
        self,
        key: str,
        discriminator: str,
        branches: Mapping[str, str],
        match: MatchMode = MatchMode.PARTIAL,
    ):
        if not branches:
            raise ValueError(f"PolymorphicField {key} needs at least one branch")
        self.keys = (key,)
        self.discriminator = discriminator
        self.branches = tuple((_sql_literal(kind), column) for kind, column in branches.items())
        self.match = match

    def apply(self, filters, conditions):
        (key,) = self.keys
        value = filters.get(key)
        if is_blank(value):
            return

        if self.match is MatchMode.DAY:
            day = parse_day(key, value)
            test, values = "({col} >= %s AND {col} < %s)", (day, day + timedelta(days=1))
        elif self.match is MatchMode.EXACT:
            test, values = "{col} = %s", (require_scalar(key, value),)
        else:
            test, values = "{col} ILIKE %s", (contains_pattern(require_scalar(key, value)),)

        parts = []
        params = []
        for kind, column in self.branches:
            parts.append(f"({self.discriminator} = {kind} AND {test.format(col=column)})")
            params.extend(values)
        conditions.add(f"({' OR '.join(parts)})", *params)


# =============================================================================
# Schema
# =============================================================================


class FilterSchema:
    """An ordered set of rules plus the system predicates always applied first."""

    def __init__(self, name: str, rules: Iterable[Rule], system_predicates: Iterable[str] = ()):
        self.name = name
        self.rules = tuple(rules)
        self.system_predicates = tuple(system_predicates)
        seen: set[str] = set()
        for rule in self.rules:
            duplicate = seen.intersection(rule.keys)
            if duplicate:
                raise ValueError(f"{name}: filter key declared twice: {sorted(duplicate)}")
            seen.update(rule.keys)
        self.keys = frozenset(seen)

    def build(
        self,
        filters: Mapping | None = None,
        system: Iterable[tuple[str, Sequence[Any]]] = (),
    ) -> QueryPlan:
        """
        Compile `filters` into a QueryPlan.

        Args:
            filters: Untrusted key/value filters. Unknown keys are dropped.
            system: Server-side (sql, values) predicates, never caller-derived.

        Raises:
            ValidationError: a recognized key carries a value of the wrong shape
        """
        if filters is None:
            filters = {}
        if not isinstance(filters, Mapping):
            raise ValidationError(f"{self.name} filters must be an object")

        conditions = Conditions()
        for predicate in self.system_predicates:
            conditions.add(predicate)
        for sql, values in system:
            conditions.add(sql, *values)
        for rule in self.rules:
            rule.apply(filters, conditions)
        return conditions.plan()
