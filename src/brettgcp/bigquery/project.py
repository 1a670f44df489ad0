from typing import List

from ..resources import ResultList, compact, project_id as default_project
from . import ops
from .data import QueryData
from .dataset import Dataset
from .job import Job, QueryJob
from .query import query_request, query_job_request

class Project():
    """
    Entry point to BigQuery, bound to one project.
    Defaults to the project the access singleton resolves.

        bigquery = Project()
        data = bigquery.query("SELECT name FROM `my_dataset.users` WHERE age > @age",
                              params={"age": 35})
        for row in data:
            print(row["name"])
    """

    def __init__(self, project: str|None = None) -> None:
        self._project = project

    def __str__(self) -> str:
        return self.project

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def project(self) -> str:
        return default_project(self._project)

    def query(self, query: str, params: dict|List|None = None, max: int|None = None,
              timeout: int = 10000, dryrun: bool|None = None, cache: bool = True,
              dataset=None, project: str|None = None, legacy_sql: bool = False) -> QueryData:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/query
        Run a query and wait up to timeout ms for the rows.
        params as a dict are named (@name), as a list positional (?), their
        BigQuery types are inferred from the Python values.  Parameters need
        standard SQL so they can't be combined with legacy_sql.
        dataset (and project for the dataset) sets the default dataset for
        unqualified table names.
        """
        body = query_request(query, self.project, params=params, max=max, timeout=timeout,
                             dryrun=dryrun, cache=cache, dataset=dataset,
                             legacy_sql=legacy_sql)
        if project is not None and "defaultDataset" in body:
            body["defaultDataset"]["projectId"] = project
        return QueryData(ops.query(self.project, body), self.project)

    def query_job(self, query: str, params: dict|List|None = None, priority: str = "INTERACTIVE",
                  cache: bool = True, table=None, create: str|None = None, write: str|None = None,
                  dataset=None, large_results: bool|None = None, flatten: bool|None = None,
                  maximum_billing_tier: int|None = None, legacy_sql: bool = False,
                  dryrun: bool|None = None, job_id: str|None = None,
                  labels: dict|None = None) -> QueryJob:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/insert
        Start a query job and return straight away.  Use wait_until_done() and
        query_results() on the job for the rows.
        table is the destination (a Table or "project:dataset.table"), create is
        "needed"/"never" and write "truncate"/"append"/"empty".
        """
        body = query_job_request(query, self.project, params=params, priority=priority,
                                 cache=cache, table=table, create=create, write=write,
                                 dataset=dataset, large_results=large_results, flatten=flatten,
                                 maximum_billing_tier=maximum_billing_tier, legacy_sql=legacy_sql,
                                 dryrun=dryrun, job_id=job_id, labels=labels)
        return Job.from_gapi(ops.insert_job(self.project, body))

    def datasets(self, all: bool = False, filter: str|None = None,
                 max: int|None = None, token: str|None = None) -> ResultList:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/datasets/list
        all includes hidden datasets.  filter is on labels, e.g. "labels.env:prod"
        """
        return ops.list_datasets(self.project, Dataset.from_base, token,
                                 all=all or None, filter=filter, maxResults=max)

    def dataset(self, dataset_id: str) -> Dataset|None:
        gapi = ops.get_dataset(self.project, dataset_id)
        return None if gapi is None else Dataset.from_base(gapi)

    def create_dataset(self, dataset_id: str, name: str|None = None, description: str|None = None,
                       expiration: int|None = None, location: str|None = None,
                       labels: dict|None = None) -> Dataset:
        """https://cloud.google.com/bigquery/docs/reference/rest/v2/datasets/insert"""
        body = compact({
            "datasetReference": {"projectId": self.project, "datasetId": dataset_id},
            "friendlyName": name,
            "description": description,
            "defaultTableExpirationMs": None if expiration is None else str(expiration),
            "location": location,
            "labels": labels,
        })
        return Dataset.from_base(ops.insert_dataset(self.project, body))

    def jobs(self, all: bool = False, filter: str|None = None,
             max: int|None = None, token: str|None = None) -> ResultList:
        """
        https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/list
        all includes other users' jobs, filter is a job state (done, pending, running).
        """
        state = None
        if filter is not None:
            state = str(filter).lower()
            if state not in ("done", "pending", "running"):
                raise ValueError(f"Invalid job state filter: {filter}")
        return ops.list_jobs(self.project, Job.from_gapi, token,
                             allUsers=all or None, stateFilter=state,
                             maxResults=max, projection="full")

    def job(self, job_id: str) -> Job|None:
        gapi = ops.get_job(self.project, job_id)
        return None if gapi is None else Job.from_gapi(gapi)
