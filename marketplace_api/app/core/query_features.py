"""
Query-string driven filtering, sorting, projection and pagination.

List endpoints accept free-form query parameters such as::

    ?price[gte]=10&price[lt]=50&tags=web, react&sort=-averageRating,price
    &fields=title,price&page=2&limit=20

Two independent, pure steps turn those parameters into a MongoDB
query:

* ``build_predicate`` parses every non-reserved key into a
  ``FilterClause`` (field, operator, value) and folds the clauses into
  a filter document.  ``tags`` adds an ``$all`` containment condition.
* ``build_result_shape`` reads ``sort``, ``fields``, ``page`` and
  ``limit`` into an immutable ``ResultShape``.

``build_query_spec`` composes both into a ``QuerySpec`` whose
``find_kwargs`` can be splatted straight into ``collection.find``.
Malformed sort, projection or pagination input never raises; it falls
back to the defaults.
"""

from __future__ import annotations

import copy
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

Scalar = Union[int, float, str]
ParamValue = Union[str, Sequence[str]]

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields", "tags"})

DEFAULT_SORT: Tuple[Tuple[str, int], ...] = (("createdAt", -1),)
DEFAULT_PROJECTION: Tuple[Tuple[str, int], ...] = (("__v", 0),)
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
# Largest integer BSON can store.
INT64_MAX = 2 ** 63 - 1

_OPERATOR_KEY = re.compile(r"^(?P<field>.+)\[(?P<op>gte|gt|lte|lt)\]$")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class FilterOperator(str, Enum):
    EQ = "eq"
    GTE = "gte"
    GT = "gt"
    LTE = "lte"
    LT = "lt"

    @property
    def mongo(self) -> str:
        return f"${self.value}"


@dataclass(frozen=True)
class FilterClause:
    """One parsed ``field[op]=value`` condition."""

    field: str
    operator: FilterOperator
    value: Union[Scalar, Tuple[Scalar, ...]]


@dataclass(frozen=True)
class ResultShape:
    """Sort order, projection and pagination window of a list query."""

    sort: Tuple[Tuple[str, int], ...] = DEFAULT_SORT
    projection: Tuple[Tuple[str, int], ...] = DEFAULT_PROJECTION
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class QuerySpec:
    """A filter plus a result shape, ready to be handed to ``find``."""

    filter: Mapping[str, Any] = field(default_factory=dict)
    shape: ResultShape = field(default_factory=ResultShape)

    def find_kwargs(self) -> Dict[str, Any]:
        return {
            "filter": copy.deepcopy(dict(self.filter)),
            "projection": dict(self.shape.projection),
            "sort": list(self.shape.sort),
            "skip": self.shape.skip,
            "limit": self.shape.limit,
        }


def coerce_value(raw: str) -> Scalar:
    """Return ``raw`` as an int or float when it is numeric text.

    Surrounding whitespace is ignored.  Anything that is not a plain
    decimal number (including the empty string) is returned unchanged.
    Integers too wide for a 64-bit BSON int become floats.
    """
    text = raw.strip()
    if not _NUMBER.match(text):
        return raw
    if _INTEGER.match(text):
        number = int(text)
        if abs(number) <= INT64_MAX:
            return number
    value = float(text)
    return value if math.isfinite(value) else raw


def _last(value: ParamValue) -> str:
    if isinstance(value, str):
        return value
    return value[-1] if value else ""


def _as_text(value: Optional[ParamValue]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return ",".join(value)


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def is_safe_field(name: str) -> bool:
    """False for empty names and names with a segment starting with ``$``."""
    return bool(name) and not any(part.startswith("$") for part in name.split("."))


def parse_filter_clauses(params: Mapping[str, ParamValue]) -> Tuple[FilterClause, ...]:
    """Parse every non-reserved parameter into a ``FilterClause``.

    ``field[gte|gt|lte|lt]`` keys become range clauses on ``field``;
    any other key (including ``field[ne]`` and friends, kept verbatim)
    is an equality clause.  A repeated equality key keeps all of its
    values.
    """
    clauses: List[FilterClause] = []
    for key, value in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _OPERATOR_KEY.match(key)
        if not is_safe_field(match.group("field") if match else key):
            continue
        if match:
            clauses.append(
                FilterClause(
                    field=match.group("field"),
                    operator=FilterOperator(match.group("op")),
                    value=coerce_value(_last(value)),
                )
            )
        elif isinstance(value, str) or len(value) == 1:
            clauses.append(FilterClause(key, FilterOperator.EQ, coerce_value(_last(value))))
        else:
            clauses.append(FilterClause(key, FilterOperator.EQ, tuple(coerce_value(v) for v in value)))
    return tuple(clauses)


def parse_tags(raw: Optional[ParamValue]) -> Tuple[str, ...]:
    """Split a comma separated tag list, trimming, lower-casing and de-duplicating."""
    tags: List[str] = []
    for tag in _split_csv(_as_text(raw)):
        tag = tag.lower()
        if tag not in tags:
            tags.append(tag)
    return tuple(tags)


def fold_clauses(clauses: Iterable[FilterClause], tags: Sequence[str] = ()) -> Dict[str, Any]:
    """Fold parsed clauses (and required tags) into a MongoDB filter."""
    predicate: Dict[str, Any] = {}
    for clause in clauses:
        if clause.operator is FilterOperator.EQ:
            if isinstance(clause.value, tuple):
                predicate[clause.field] = {"$in": list(clause.value)}
            else:
                predicate[clause.field] = clause.value
            continue
        existing = predicate.get(clause.field)
        conditions = dict(existing) if isinstance(existing, dict) else {}
        conditions[clause.operator.mongo] = clause.value
        predicate[clause.field] = conditions
    if tags:
        predicate["tags"] = {"$all": list(tags)}
    return predicate


def build_predicate(params: Mapping[str, ParamValue]) -> Dict[str, Any]:
    """Translate query parameters into a MongoDB filter document."""
    return fold_clauses(parse_filter_clauses(params), parse_tags(params.get("tags")))


def parse_sort(raw: Optional[ParamValue]) -> Tuple[Tuple[str, int], ...]:
    """``"price,-createdAt"`` -> ``(("price", 1), ("createdAt", -1))``."""
    keys: List[Tuple[str, int]] = []
    for token in _split_csv(_as_text(raw)):
        name, direction = (token[1:], -1) if token.startswith("-") else (token.lstrip("+"), 1)
        if is_safe_field(name):
            keys.append((name, direction))
    return tuple(keys) or DEFAULT_SORT


def parse_projection(raw: Optional[ParamValue]) -> Tuple[Tuple[str, int], ...]:
    """Comma separated allow-list of fields.

    ``-field`` tokens are only honoured when every token is one, which
    yields an exclusion projection.
    """
    tokens = [token for token in _split_csv(_as_text(raw)) if is_safe_field(token.lstrip("-"))]
    included = tuple((token, 1) for token in tokens if not token.startswith("-"))
    if included:
        return included
    excluded = tuple((token[1:], 0) for token in tokens if len(token) > 1)
    return excluded or DEFAULT_PROJECTION


def parse_positive_int(raw: Optional[ParamValue], default: int) -> int:
    """Parse the leading integer of ``raw``.

    Falls back to ``default`` when the value is below 1 or too large
    for a 64-bit BSON int.
    """
    text = _as_text(raw)
    if text is None:
        return default
    match = _LEADING_INT.match(text)
    if not match:
        return default
    value = int(match.group(1))
    return value if 1 <= value <= INT64_MAX else default


def build_result_shape(
    params: Mapping[str, ParamValue],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = 0,
) -> ResultShape:
    """Read ``sort``, ``fields``, ``page`` and ``limit`` from ``params``.

    ``max_limit`` caps ``limit`` when positive; 0 leaves it unbounded.
    """
    limit = parse_positive_int(_last_or_none(params, "limit"), default_limit)
    if max_limit > 0:
        limit = min(limit, max_limit)
    page = parse_positive_int(_last_or_none(params, "page"), DEFAULT_PAGE)
    if (page - 1) * limit > INT64_MAX:
        page = DEFAULT_PAGE
    return ResultShape(
        sort=parse_sort(params.get("sort")),
        projection=parse_projection(params.get("fields")),
        page=page,
        limit=limit,
    )


def _last_or_none(params: Mapping[str, ParamValue], key: str) -> Optional[str]:
    value = params.get(key)
    return None if value is None else _last(value)


def build_query_spec(
    params: Mapping[str, ParamValue],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = 0,
) -> QuerySpec:
    return QuerySpec(
        filter=build_predicate(params),
        shape=build_result_shape(params, default_limit=default_limit, max_limit=max_limit),
    )


def params_from_items(items: Iterable[Tuple[str, str]]) -> Dict[str, ParamValue]:
    """Group ``(key, value)`` pairs; repeated keys become lists."""
    grouped: Dict[str, ParamValue] = {}
    for key, value in items:
        if key not in grouped:
            grouped[key] = value
        elif isinstance(grouped[key], str):
            grouped[key] = [grouped[key], value]
        else:
            grouped[key] = [*grouped[key], value]
    return grouped
