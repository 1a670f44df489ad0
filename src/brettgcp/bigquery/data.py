"""
Row containers returned from queries and table reads.
They are lists of row dicts so they can be used directly, the paging and
job bookkeeping hang off as attributes.
"""
from typing import Iterator, List, Self

from . import ops
from .resources import SchemaField, format_rows, schema_fields

class QueryData(list):
    """
    Rows from jobs.query / jobs.getQueryResults.
    If the query didn't finish within the request timeout complete is False and
    there are no rows yet; wait on the job and call query_results() again.
    """
    def __init__(self, response: dict|None = None, project: str|None = None) -> None:
        response = response or {}
        self._response = response
        self.schema: List[SchemaField] = schema_fields(response.get("schema"))
        super().__init__(format_rows(response.get("rows"), self.schema))
        job_ref = response.get("jobReference", {}) or {}
        self.project = job_ref.get("projectId", project)
        self.job_id = job_ref.get("jobId")
        self.location = job_ref.get("location")
        self.token = response.get("pageToken")
        self.total = int(response["totalRows"]) if response.get("totalRows") is not None else None
        self.complete = bool(response.get("jobComplete", False))
        self.cache_hit = bool(response.get("cacheHit", False))
        self.total_bytes = (int(response["totalBytesProcessed"])
                            if response.get("totalBytesProcessed") is not None else None)
        self.errors = response.get("errors", [])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(job={self.job_id!r}, rows={len(self)}, total={self.total!r})"

    @property
    def headers(self) -> List[str]:
        return [f.name for f in self.schema]

    def has_next(self) -> bool:
        return bool(self.token) and bool(self.job_id)

    def next(self, max: int|None = None, timeout: int|None = None) -> Self|None:
        if not self.has_next():
            return None
        response = ops.get_query_results(self.project, self.job_id, pageToken=self.token,
                                         maxResults=max, timeoutMs=timeout, location=self.location)
        return QueryData(response, self.project)

    def all(self, max: int|None = None) -> Iterator[dict]:
        """Every row from this page onwards, stops after max rows if given."""
        page = self
        count = 0
        while page is not None:
            for row in page:
                if max is not None and count >= max:
                    return
                yield row
                count += 1
            page = page.next()


class Data(list):
    """
    Rows read straight out of a table via tabledata.list.
    Paging needs the table to call back into.
    """
    def __init__(self, response: dict|None, table) -> None:
        response = response or {}
        self.table = table
        self.schema: List[SchemaField] = schema_fields(table.schema)
        super().__init__(format_rows(response.get("rows"), self.schema))
        self.token = response.get("pageToken")
        self.total = int(response["totalRows"]) if response.get("totalRows") is not None else None
        self.etag = response.get("etag")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(table={self.table.table_id!r}, rows={len(self)}, total={self.total!r})"

    def has_next(self) -> bool:
        return bool(self.token)

    def next(self, max: int|None = None) -> Self|None:
        if not self.has_next():
            return None
        return self.table.data(token=self.token, max=max)

    def all(self, max: int|None = None) -> Iterator[dict]:
        page = self
        count = 0
        while page is not None:
            for row in page:
                if max is not None and count >= max:
                    return
                yield row
                count += 1
            page = page.next()


class InsertResponse():
    """
    Result of a streaming insert.  insertErrors is only present for rows that
    failed, keyed by their index in the request.
    """
    def __init__(self, rows: List[dict], response: dict|None) -> None:
        self.rows = rows
        self._errors = {}
        for e in (response or {}).get("insertErrors", []):
            self._errors[int(e.get("index", 0))] = e.get("errors", [])

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inserted={self.insert_count}, errors={self.error_count})"

    @property
    def success(self) -> bool:
        return not self._errors

    @property
    def insert_count(self) -> int:
        return len(self.rows) - len(self._errors)

    @property
    def error_count(self) -> int:
        return len(self._errors)

    @property
    def insert_errors(self) -> List[tuple[dict, List[dict]]]:
        return [(self.rows[i], errs) for i, errs in sorted(self._errors.items()) if i < len(self.rows)]

    @property
    def error_rows(self) -> List[dict]:
        return [row for row, _ in self.insert_errors]

    def errors_for(self, row: dict) -> List[dict]:
        for r, errs in self.insert_errors:
            if r is row:
                return errs
        return []
