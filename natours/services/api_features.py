"""
Query-string driven list queries.

:class:`APIFeatures` turns the query string of a list request into a single
composed ``SELECT`` against the tours table:

* ``?difficulty=easy&price[lt]=500`` - filtering. Plain keys compare for
  equality, a repeated key matches any of its values, and ``field[op]`` keys
  compare with ``gte``, ``gt``, ``lte`` or ``lt``.
* ``?sort=-ratingsAverage,price`` - ordering, highest priority first; ``-``
  means descending. Defaults to newest first.
* ``?fields=name,price`` - projection. ``-field`` entries exclude fields
  from the default set instead.
* ``?page=2&limit=10`` - pagination.

Each step parses its part of the query string into a small typed value
(:class:`FilterCondition`, :class:`SortKey`, a tuple of field names, skip and
limit) and returns a new builder with the statement extended. Nothing is
executed here; the service runs :attr:`APIFeatures.statement` and, when a page
was asked for explicitly, :attr:`APIFeatures.count_statement`.
"""

import enum
import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import load_only, noload

from ..core.exceptions import BadQueryError, CastError
from ..models.tour import Tour, TourStartDate
from ..schemas.tour import DEFAULT_LIST_FIELDS, TOUR_FIELDS, FieldKind, FieldSpec, as_utc

QueryValue = Union[str, list[str]]

# Keys that control the query rather than filter it
RESERVED_PARAMETERS = frozenset({"page", "sort", "limit", "fields"})

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100

# Largest LIMIT or OFFSET a database accepts (signed 64-bit)
MAX_SQL_INTEGER = 2**63 - 1

_COMPARISON_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<operator>[^\[\]]*)\]$")


class Operator(str, enum.Enum):
    """Comparison operators a filter condition can use."""

    EQ = "eq"
    IN = "in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


# Operators accepted in the ``field[op]=value`` form
COMPARISON_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})

_OPERATORS: dict[Operator, Callable[[Any, Any], ColumnElement[bool]]] = {
    Operator.EQ: lambda col, val: col == val,
    Operator.IN: lambda col, val: col.in_(val),
    Operator.GT: lambda col, val: col > val,
    Operator.GTE: lambda col, val: col >= val,
    Operator.LT: lambda col, val: col < val,
    Operator.LTE: lambda col, val: col <= val,
}


@dataclass(frozen=True)
class FilterCondition:
    """``field operator value``, with the value already coerced to the field's type."""

    field: str
    operator: Operator
    value: Any

    def __repr__(self):
        return f"{self.field} {self.operator.value} {self.value!r}"


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


DEFAULT_SORT = (SortKey("createdAt", descending=True),)


def normalize_query_string(query_string: Optional[Mapping[str, Any]]) -> dict[str, QueryValue]:
    """
    Copy a query string into a plain ``{key: value | [values]}`` dict.

    Accepts Starlette's ``QueryParams`` (keeping repeated keys) as well as
    ordinary mappings. A key given once maps to a string, a repeated key to
    the list of its values.
    """
    if not query_string:
        return {}
    if hasattr(query_string, "multi_items"):
        items = query_string.multi_items()
    else:
        items = query_string.items()

    grouped: dict[str, list[str]] = {}
    for key, value in items:
        values = value if isinstance(value, (list, tuple)) else [value]
        grouped.setdefault(key, []).extend(str(v) for v in values)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}


def _first(value: Optional[QueryValue]) -> Optional[str]:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _joined(value: Optional[QueryValue]) -> str:
    if isinstance(value, list):
        return ",".join(value)
    return value or ""


def parse_positive_int(value: Optional[QueryValue], default: int) -> int:
    """
    Parse a page or limit value.

    Anything but a positive integer that fits a SQL ``BIGINT`` yields ``default``.
    """
    text = _first(value)
    if text is None:
        return default
    try:
        number = int(text.strip())
    except ValueError:
        return default
    return number if 0 < number <= MAX_SQL_INTEGER else default


def _lookup_field(name: str, parameter: str) -> FieldSpec:
    spec = TOUR_FIELDS.get(name)
    if spec is None:
        raise BadQueryError(f"Unknown field '{name}' in '{parameter}'", parameter=parameter)
    return spec


def _parse_datetime(text: str) -> datetime:
    return as_utc(datetime.fromisoformat(text.strip().replace("Z", "+00:00")))


def _parse_number(text: str) -> float:
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(text)
    return number


_COERCERS: dict[FieldKind, Callable[[str], Any]] = {
    FieldKind.UUID: UUID,
    FieldKind.STRING: str,
    FieldKind.NUMBER: _parse_number,
    FieldKind.DATETIME: _parse_datetime,
    FieldKind.DATETIME_LIST: _parse_datetime,
}


def coerce_value(name: str, spec: FieldSpec, value: str) -> Any:
    """Convert a query-string value to the type of ``name``; raises :class:`CastError`."""
    coercer = _COERCERS.get(spec.kind)
    if coercer is None:
        raise BadQueryError(f"Field '{name}' cannot be filtered on", parameter=name)
    try:
        return coercer(value)
    except (TypeError, ValueError):
        raise CastError(name, value)


def parse_filters(params: Mapping[str, QueryValue]) -> tuple[FilterCondition, ...]:
    """
    Turn the non-reserved query-string keys into filter conditions.

    ``price[gte]=100`` becomes ``FilterCondition("price", Operator.GTE, 100.0)``;
    ``difficulty=easy`` becomes an equality and ``difficulty=easy&difficulty=medium``
    an ``in`` condition. Operators come from the bracket syntax only, so a
    field or value that happens to contain ``gt`` or ``lt`` is left alone.
    """
    conditions = []
    for key, value in params.items():
        if key in RESERVED_PARAMETERS:
            continue

        match = _COMPARISON_KEY.match(key)
        if match:
            name = match.group("field")
            try:
                operator = Operator(match.group("operator"))
            except ValueError:
                operator = None
            if operator not in COMPARISON_OPERATORS:
                raise BadQueryError(
                    f"Unsupported operator '{match.group('operator')}' in '{key}'",
                    parameter=key,
                )
            if isinstance(value, list):
                raise BadQueryError(f"'{key}' accepts a single value", parameter=key)
        else:
            name = key
            operator = Operator.IN if isinstance(value, list) else Operator.EQ

        spec = _lookup_field(name, key)
        if operator is Operator.IN:
            coerced = [coerce_value(name, spec, item) for item in value]
        else:
            coerced = coerce_value(name, spec, value)
        conditions.append(FilterCondition(name, operator, coerced))
    return tuple(conditions)


def compile_condition(condition: FilterCondition) -> ColumnElement[bool]:
    """Translate one condition into a SQLAlchemy expression."""
    spec = TOUR_FIELDS[condition.field]
    compare = _OPERATORS[condition.operator]
    if spec.kind is FieldKind.DATETIME_LIST:
        # Matches when any start date satisfies the condition
        return Tour.start_dates.any(compare(TourStartDate.starts_at, condition.value))
    return compare(getattr(Tour, spec.attribute), condition.value)


def parse_sort(value: Optional[QueryValue]) -> tuple[SortKey, ...]:
    """Parse ``sort=a,-b``; an absent or empty value gives the default ordering."""
    keys = []
    for item in _joined(value).split(","):
        item = item.strip()
        if not item:
            continue
        descending = item.startswith("-")
        name = item[1:] if descending else item
        spec = _lookup_field(name, "sort")
        if spec.is_list:
            raise BadQueryError(f"Cannot sort by list field '{name}'", parameter="sort")
        keys.append(SortKey(name, descending))
    return tuple(keys) or DEFAULT_SORT


def parse_projection(
    value: Optional[QueryValue],
    default: tuple[str, ...] = DEFAULT_LIST_FIELDS,
) -> tuple[str, ...]:
    """
    Parse ``fields=a,b`` (inclusion) or ``fields=-a,-b`` (exclusion).

    ``id`` is always returned. Inclusion and exclusion cannot be mixed.
    """
    names = [item.strip() for item in _joined(value).split(",") if item.strip()]
    if not names:
        return default

    excluded = [name[1:] for name in names if name.startswith("-")]
    included = [name for name in names if not name.startswith("-")]
    if excluded and included:
        raise BadQueryError("Projection cannot mix inclusion and exclusion", parameter="fields")
    for name in excluded or included:
        _lookup_field(name, "fields")

    if included:
        return tuple(dict.fromkeys(["id", *included]))
    return tuple(name for name in default if name == "id" or name not in excluded)


@dataclass(frozen=True)
class APIFeatures:
    """
    Immutable builder for a tour list query.

    Usage::

        features = (
            APIFeatures(select(Tour), request.query_params)
            .filter()
            .sort()
            .project()
            .paginate()
        )
        tours = (await session.execute(features.statement)).scalars().all()

    Every step returns a new builder; the original and the caller's query
    string are never modified.
    """

    statement: Select
    query_string: Mapping[str, QueryValue]
    filters: tuple[FilterCondition, ...] = ()
    ordering: tuple[SortKey, ...] = ()
    projection: tuple[str, ...] = DEFAULT_LIST_FIELDS
    skip: int = 0
    limit: Optional[int] = None
    page_requested: bool = False
    _where: tuple[ColumnElement[bool], ...] = field(default=(), repr=False)

    def __post_init__(self):
        # Own read-only copy of the query string
        object.__setattr__(
            self, "query_string", MappingProxyType(normalize_query_string(self.query_string))
        )

    def filter(self) -> "APIFeatures":
        """Apply every non-reserved key as a condition."""
        conditions = parse_filters(self.query_string)
        clauses = tuple(compile_condition(condition) for condition in conditions)
        statement = self.statement.where(*clauses) if clauses else self.statement
        return replace(
            self,
            statement=statement,
            filters=self.filters + conditions,
            _where=self._where + clauses,
        )

    def sort(self) -> "APIFeatures":
        """Order by ``sort`` (default newest first), with the id as the final tie-breaker."""
        ordering = parse_sort(self.query_string.get("sort"))
        columns = []
        for key in ordering:
            column = getattr(Tour, TOUR_FIELDS[key.field].attribute)
            columns.append(column.desc() if key.descending else column.asc())
        statement = self.statement.order_by(*columns, Tour.id.asc())
        return replace(self, statement=statement, ordering=ordering)

    def project(self) -> "APIFeatures":
        """Load only the fields named by ``fields``."""
        projection = parse_projection(self.query_string.get("fields"))
        columns = [
            getattr(Tour, TOUR_FIELDS[name].attribute)
            for name in projection
            if TOUR_FIELDS[name].kind is not FieldKind.DATETIME_LIST
        ]
        options = [load_only(*columns)] if columns else []
        if "startDates" not in projection:
            options.append(noload(Tour.start_dates))
        return replace(self, statement=self.statement.options(*options), projection=projection)

    def paginate(self, default_limit: int = DEFAULT_LIMIT) -> "APIFeatures":
        """Apply ``page`` and ``limit`` as OFFSET/LIMIT."""
        page = parse_positive_int(self.query_string.get("page"), DEFAULT_PAGE)
        limit = parse_positive_int(self.query_string.get("limit"), default_limit)
        skip = min((page - 1) * limit, MAX_SQL_INTEGER)
        return replace(
            self,
            statement=self.statement.offset(skip).limit(limit),
            skip=skip,
            limit=limit,
            page_requested=bool(_first(self.query_string.get("page"))),
        )

    @property
    def count_statement(self) -> Select:
        """``SELECT count(*)`` over the tours matching the applied filters."""
        return select(func.count()).select_from(Tour).where(*self._where)

    @classmethod
    def build(
        cls,
        query_string: Optional[Mapping[str, Any]],
        default_limit: int = DEFAULT_LIMIT,
        statement: Optional[Select] = None,
    ) -> "APIFeatures":
        """Apply all four steps in order: filter, sort, project, paginate."""
        base = statement if statement is not None else select(Tour)
        return cls(base, query_string or {}).filter().sort().project().paginate(default_limit)
