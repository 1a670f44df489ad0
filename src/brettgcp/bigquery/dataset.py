from dataclasses import dataclass, field
from typing import List, Self

from ..resources import GoogleCloudResourceBase, ResultList, compact
from . import ops
from .data import QueryData
from .job import QueryJob, Job
from .query import query_request, query_job_request
from .resources import SchemaField, schema_base
from .table import Table

@dataclass
class Dataset(GoogleCloudResourceBase):
    """
    https://cloud.google.com/bigquery/docs/reference/rest/v2/datasets#Dataset
    Queries run from a dataset use it as the default dataset so tables
    can be referred to unqualified.
    """
    kind: str|None = field(default=None)
    etag: str|None = field(default=None)
    id: str|None = field(default=None)
    selfLink: str|None = field(default=None)
    datasetReference: dict = field(default_factory=dict)
    friendlyName: str|None = field(default=None)
    description: str|None = field(default=None)
    defaultTableExpirationMs: str|None = field(default=None)
    labels: dict|None = field(default=None)
    access: List[dict]|None = field(default=None)
    creationTime: str|None = field(default=None)
    lastModifiedTime: str|None = field(default=None)
    location: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.dataset_id)

    def __str__(self) -> str:
        if self:
            return f"{self.project_id}:{self.dataset_id}"
        return "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def dataset_ref(self) -> dict:
        return self.datasetReference

    @property
    def dataset_id(self) -> str|None:
        return self.datasetReference.get("datasetId")

    @property
    def project_id(self) -> str|None:
        return self.datasetReference.get("projectId")

    @property
    def name(self) -> str|None:
        return self.friendlyName

    @property
    def default_expiration(self) -> int|None:
        return None if self.defaultTableExpirationMs is None else int(self.defaultTableExpirationMs)

    def reload(self) -> Self:
        gapi = ops.get_dataset(self.project_id, self.dataset_id)
        if gapi:
            self.update_fields(**gapi)
        return self

    def update(self, name: str|None = None, description: str|None = None,
               expiration: int|None = None, labels: dict|None = None) -> List[str]:
        """https://cloud.google.com/bigquery/docs/reference/rest/v2/datasets/patch"""
        body = compact({"friendlyName": name, "description": description,
                        "defaultTableExpirationMs": None if expiration is None else str(expiration),
                        "labels": labels})
        if not body:
            return []
        gapi = ops.patch_dataset(self.project_id, self.dataset_id, body)
        return self.update_fields(**gapi)

    def delete(self, force: bool = False) -> bool:
        """
        A dataset with tables can only be deleted with force.
        """
        ops.delete_dataset(self.project_id, self.dataset_id, force)
        return True

    def tables(self, max: int|None = None, token: str|None = None) -> ResultList:
        return ops.list_tables(self.project_id, self.dataset_id, Table.from_base, token, maxResults=max)

    def table(self, table_id: str) -> Table|None:
        gapi = ops.get_table(self.project_id, self.dataset_id, table_id)
        return None if gapi is None else Table.from_base(gapi)

    def create_table(self, table_id: str, name: str|None = None, description: str|None = None,
                     schema: List[SchemaField|dict]|None = None) -> Table:
        """https://cloud.google.com/bigquery/docs/reference/rest/v2/tables/insert"""
        body = compact({
            "tableReference": {"projectId": self.project_id, "datasetId": self.dataset_id, "tableId": table_id},
            "friendlyName": name,
            "description": description,
            "schema": schema_base(schema),
        })
        return Table.from_base(ops.insert_table(self.project_id, self.dataset_id, body))

    def create_view(self, table_id: str, query: str, name: str|None = None,
                    description: str|None = None, legacy_sql: bool = False) -> Table:
        body = compact({
            "tableReference": {"projectId": self.project_id, "datasetId": self.dataset_id, "tableId": table_id},
            "friendlyName": name,
            "description": description,
            "view": {"query": query, "useLegacySql": legacy_sql},
        })
        return Table.from_base(ops.insert_table(self.project_id, self.dataset_id, body))

    def query(self, query: str, params=None, max: int|None = None, timeout: int = 10000,
              dryrun: bool|None = None, cache: bool = True, legacy_sql: bool = False) -> QueryData:
        """
        Synchronous query with this dataset as the default dataset.
        See Project.query()
        """
        body = query_request(query, self.project_id, params=params, max=max, timeout=timeout,
                             dryrun=dryrun, cache=cache, dataset=self, legacy_sql=legacy_sql)
        return QueryData(ops.query(self.project_id, body), self.project_id)

    def query_job(self, query: str, params=None, priority: str = "INTERACTIVE", cache: bool = True,
                  table=None, create: str|None = None, write: str|None = None,
                  large_results: bool|None = None, flatten: bool|None = None,
                  maximum_billing_tier: int|None = None, legacy_sql: bool = False,
                  dryrun: bool|None = None, job_id: str|None = None,
                  labels: dict|None = None) -> QueryJob:
        """
        Asynchronous query job with this dataset as the default dataset.
        See Project.query_job()
        """
        body = query_job_request(query, self.project_id, params=params, priority=priority,
                                 cache=cache, table=table, create=create, write=write,
                                 dataset=self, large_results=large_results, flatten=flatten,
                                 maximum_billing_tier=maximum_billing_tier, legacy_sql=legacy_sql,
                                 dryrun=dryrun, job_id=job_id, labels=labels)
        return Job.from_gapi(ops.insert_job(self.project_id, body))
