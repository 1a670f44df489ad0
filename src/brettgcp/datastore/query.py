"""
Query builders and the results of running them.
https://cloud.google.com/datastore/docs/reference/data/rest/v1/projects/runQuery#Query
"""
from collections.abc import Callable, Iterator
from typing import Any, Self
import copy

from .entity import Entity, Key, to_value

OPERATORS = {
    "=": "EQUAL",
    "==": "EQUAL",
    "eq": "EQUAL",
    "<": "LESS_THAN",
    "lt": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    "lte": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    "gt": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "gte": "GREATER_THAN_OR_EQUAL",
    "!=": "NOT_EQUAL",
    "in": "IN",
    "not_in": "NOT_IN",
    "has_ancestor": "HAS_ANCESTOR",
}

DIRECTIONS = {
    "asc": "ASCENDING",
    "ascending": "ASCENDING",
    "desc": "DESCENDING",
    "descending": "DESCENDING",
}


class Query():
    """
    Builds a Datastore query.  Each method returns the query so calls chain:

        query = Query("Task").where("done", "=", False).order("priority", "desc").limit(10)
    """

    def __init__(self, *kinds: str) -> None:
        self._kinds = list(kinds)
        self._filters = []
        self._orders = []
        self._projection = []
        self._distinct_on = []
        self._start_cursor = None
        self._end_cursor = None
        self._offset = None
        self._limit = None

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self.to_base()}"

    def kind(self, *kinds: str) -> Self:
        self._kinds.extend(kinds)
        return self

    def where(self, name: str, operator: str, value: Any) -> Self:
        """
        Add a property filter, filters are ANDed.  Operators are =, <, <=, >, >=,
        != , in, not_in and has_ancestor (whose value is a Key).
        """
        op = OPERATORS.get(str(operator).lower())
        if op is None:
            raise ValueError(f"Invalid query operator: {operator}")
        if op == "HAS_ANCESTOR" and not isinstance(value, Key):
            raise TypeError("has_ancestor needs a Key")
        self._filters.append({"propertyFilter": {
            "property": {"name": name},
            "op": op,
            "value": to_value(value),
        }})
        return self

    filter = where

    def ancestor(self, key: Key|Entity) -> Self:
        """Only entities below key (or the entity's key)."""
        if isinstance(key, Entity):
            key = key.key
        return self.where("__key__", "has_ancestor", key)

    def order(self, name: str, direction: str = "asc") -> Self:
        d = DIRECTIONS.get(str(direction).lower())
        if d is None:
            raise ValueError(f"Invalid sort direction: {direction}")
        self._orders.append({"property": {"name": name}, "direction": d})
        return self

    def limit(self, num: int) -> Self:
        self._limit = num
        return self

    def offset(self, num: int) -> Self:
        self._offset = num
        return self

    def start(self, cursor: str) -> Self:
        self._start_cursor = cursor
        return self

    cursor = start

    def end(self, cursor: str) -> Self:
        self._end_cursor = cursor
        return self

    def select(self, *names: str) -> Self:
        """Projection query returning only these properties."""
        self._projection.extend({"property": {"name": n}} for n in names)
        return self

    projection = select

    def distinct_on(self, *names: str) -> Self:
        self._distinct_on.extend({"name": n} for n in names)
        return self

    group_by = distinct_on

    def copy(self) -> Self:
        return copy.deepcopy(self)

    def to_base(self) -> dict:
        b = {}
        if self._kinds:
            b["kind"] = [{"name": k} for k in self._kinds]
        if len(self._filters) == 1:
            b["filter"] = self._filters[0]
        elif self._filters:
            b["filter"] = {"compositeFilter": {"op": "AND", "filters": list(self._filters)}}
        if self._orders:
            b["order"] = list(self._orders)
        if self._projection:
            b["projection"] = list(self._projection)
        if self._distinct_on:
            b["distinctOn"] = list(self._distinct_on)
        if self._start_cursor:
            b["startCursor"] = self._start_cursor
        if self._end_cursor:
            b["endCursor"] = self._end_cursor
        if self._offset is not None:
            b["offset"] = self._offset
        if self._limit is not None:
            b["limit"] = self._limit
        return b


class GqlQuery():
    """
    A GQL query string with its bindings.  bindings as a dict are named
    (@name in the query) and as a list positional (@1, @2 ...).
    Literal values in the query string need allow_literals.

        GqlQuery("SELECT * FROM Task WHERE done = @done", {"done": False})
    """

    def __init__(self, query_string: str, bindings: dict|list|None = None,
                 allow_literals: bool|None = None) -> None:
        self.query_string = query_string
        self.bindings = bindings
        self.allow_literals = allow_literals

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self.query_string}"

    @staticmethod
    def _binding(v: Any) -> dict:
        if isinstance(v, Cursor):
            return {"cursor": str(v)}
        return {"value": to_value(v)}

    def to_base(self) -> dict:
        b = {"queryString": self.query_string}
        if self.allow_literals is not None:
            b["allowLiterals"] = self.allow_literals
        if isinstance(self.bindings, dict):
            b["namedBindings"] = {k: self._binding(v) for k, v in self.bindings.items()}
        elif self.bindings:
            b["positionalBindings"] = [self._binding(v) for v in self.bindings]
        return b


class Cursor(str):
    """A query cursor, marked so GQL bindings send it as a cursor rather than a string."""
    pass


class QueryResults(list):
    """
    One batch of query results.  moreResults says whether there may be more:
    NOT_FINISHED means next() will fetch them.
    """

    def __init__(self, entities=(), cursors=(), end_cursor: str|None = None,
                 more_results: str|None = None, skipped_results: int = 0,
                 fetch: Callable[[str], Self]|None = None) -> None:
        super().__init__(entities)
        self.cursors = list(cursors)
        self.end_cursor = Cursor(end_cursor) if end_cursor else None
        self.more_results = more_results
        self.skipped_results = skipped_results
        self._fetch = fetch

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list.__repr__(self)}, more_results={self.more_results!r})"

    @property
    def cursor(self) -> str|None:
        return self.end_cursor

    def is_not_finished(self) -> bool:
        return self.more_results == "NOT_FINISHED"

    def is_more_after_limit(self) -> bool:
        return self.more_results == "MORE_RESULTS_AFTER_LIMIT"

    def is_more_after_cursor(self) -> bool:
        return self.more_results == "MORE_RESULTS_AFTER_CURSOR"

    def is_no_more(self) -> bool:
        return self.more_results == "NO_MORE_RESULTS"

    def has_next(self) -> bool:
        return self.is_not_finished() and bool(self.end_cursor) and self._fetch is not None

    def next(self) -> Self|None:
        if not self.has_next():
            return None
        return self._fetch(self.end_cursor)

    def all(self, max: int|None = None) -> Iterator[Entity]:
        page = self
        count = 0
        while page is not None:
            for item in page:
                if max is not None and count >= max:
                    return
                yield item
                count += 1
            page = page.next()
