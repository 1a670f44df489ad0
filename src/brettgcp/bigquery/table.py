from dataclasses import dataclass, field
from typing import List, Self
import uuid

from ..resources import GoogleCloudResourceBase
from . import ops
from .data import Data, InsertResponse
from .resources import SchemaField, schema_fields, schema_base, to_json_value

@dataclass
class Table(GoogleCloudResourceBase):
    """
    https://cloud.google.com/bigquery/docs/reference/rest/v2/tables#Table
    A table or view.  The list call only returns a subset of the fields, call
    reload() to fill the rest.
    """
    kind: str|None = field(default=None)
    etag: str|None = field(default=None)
    id: str|None = field(default=None)
    selfLink: str|None = field(default=None)
    tableReference: dict = field(default_factory=dict)
    friendlyName: str|None = field(default=None)
    description: str|None = field(default=None)
    labels: dict|None = field(default=None)
    schema: dict|None = field(default=None)
    numBytes: str|None = field(default=None)
    numRows: str|None = field(default=None)
    creationTime: str|None = field(default=None)
    expirationTime: str|None = field(default=None)
    lastModifiedTime: str|None = field(default=None)
    type: str|None = field(default=None)
    view: dict|None = field(default=None)
    location: str|None = field(default=None)
    streamingBuffer: dict|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.table_id) and bool(self.dataset_id)

    def __str__(self) -> str:
        if self:
            return f"{self.project_id}:{self.dataset_id}.{self.table_id}"
        return "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def table_ref(self) -> dict:
        return self.tableReference

    @property
    def table_id(self) -> str|None:
        return self.tableReference.get("tableId")

    @property
    def dataset_id(self) -> str|None:
        return self.tableReference.get("datasetId")

    @property
    def project_id(self) -> str|None:
        return self.tableReference.get("projectId")

    @property
    def name(self) -> str|None:
        return self.friendlyName

    @property
    def rows_count(self) -> int|None:
        return None if self.numRows is None else int(self.numRows)

    @property
    def bytes_count(self) -> int|None:
        return None if self.numBytes is None else int(self.numBytes)

    @property
    def fields(self) -> List[SchemaField]:
        return schema_fields(self.schema)

    @property
    def headers(self) -> List[str]:
        return [f.name for f in self.fields]

    def is_view(self) -> bool:
        return self.type == "VIEW"

    def query_id(self, standard_sql: bool = True) -> str:
        """
        How to refer to this table inside a query.
        """
        if standard_sql:
            return f"`{self.project_id}.{self.dataset_id}.{self.table_id}`"
        return f"[{self.project_id}:{self.dataset_id}.{self.table_id}]"

    def reload(self) -> Self:
        gapi = ops.get_table(self.project_id, self.dataset_id, self.table_id)
        if gapi:
            self.update_fields(**gapi)
        return self

    def update(self, name: str|None = None, description: str|None = None,
               schema: List[SchemaField|dict]|None = None,
               labels: dict|None = None) -> List[str]:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/tables/patch
        Only the given values are sent.
        """
        body = {}
        if name is not None:
            body["friendlyName"] = name
        if description is not None:
            body["description"] = description
        if schema is not None:
            body["schema"] = schema_base(schema)
        if labels is not None:
            body["labels"] = labels
        if not body:
            return []
        gapi = ops.patch_table(self.project_id, self.dataset_id, self.table_id, body)
        return self.update_fields(**gapi)

    def delete(self) -> bool:
        ops.delete_table(self.project_id, self.dataset_id, self.table_id)
        return True

    def data(self, token: str|None = None, max: int|None = None, start: int|None = None) -> Data:
        """https://cloud.google.com/bigquery/docs/reference/rest/v2/tabledata/list"""
        if self.schema is None:
            self.reload()
        response = ops.list_tabledata(self.project_id, self.dataset_id, self.table_id,
                                      pageToken=token, maxResults=max,
                                      startIndex=None if start is None else str(start))
        return Data(response, self)

    def insert(self, rows: dict|List[dict], skip_invalid: bool|None = None,
               ignore_unknown: bool|None = None, insert_ids: List[str]|None = None) -> InsertResponse:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/tabledata/insertAll
        Streaming insert.  Every row gets an insertId for best-effort de-duplication
        on retries, generated unless provided.
        """
        rlist = [rows] if isinstance(rows, dict) else list(rows)
        if not rlist:
            raise ValueError("No rows provided")
        if insert_ids is not None and len(insert_ids) != len(rlist):
            raise ValueError("insert_ids must match the number of rows")
        ids = insert_ids if insert_ids is not None else [str(uuid.uuid4()) for _ in rlist]
        body = {"rows": [{"insertId": i, "json": to_json_value(r)} for i, r in zip(ids, rlist)]}
        if skip_invalid is not None:
            body["skipInvalidRows"] = skip_invalid
        if ignore_unknown is not None:
            body["ignoreUnknownValues"] = ignore_unknown
        response = ops.insert_all(self.project_id, self.dataset_id, self.table_id, body)
        return InsertResponse(rlist, response)
