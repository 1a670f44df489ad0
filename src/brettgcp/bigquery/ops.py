"""
Thin wrappers for the BigQuery v2 REST methods.
https://cloud.google.com/bigquery/docs/reference/rest
The classes in this package do the object mapping, these just make the calls.
"""
from functools import partial
from typing import Callable

from ..access import gcp, execute
from ..errors import NotFoundError
from ..resources import ResultList, fetch_page

# do this as module level or a parent class instance?
# simpler at module level and achieves the same thing
_get_service = partial(gcp.require_service, "bigquery", "v2")

def query(project: str, body: dict) -> dict:
    """https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/query"""
    return execute(_get_service().jobs().query(projectId=project, body=body))

def get_query_results(project: str, job_id: str, **params) -> dict:
    """https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/getQueryResults"""
    params = {k: v for k, v in params.items() if v is not None}
    return execute(_get_service().jobs().getQueryResults(projectId=project, jobId=job_id, **params))

def insert_job(project: str, body: dict) -> dict:
    """https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/insert"""
    return execute(_get_service().jobs().insert(projectId=project, body=body))

def get_job(project: str, job_id: str) -> dict|None:
    try:
        return execute(_get_service().jobs().get(projectId=project, jobId=job_id))
    except NotFoundError:
        return None

def cancel_job(project: str, job_id: str) -> dict:
    return execute(_get_service().jobs().cancel(projectId=project, jobId=job_id))

def list_jobs(project: str, convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().jobs().list, "jobs", convert, token, projectId=project, **params)

def list_datasets(project: str, convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().datasets().list, "datasets", convert, token, projectId=project, **params)

def get_dataset(project: str, dataset_id: str) -> dict|None:
    try:
        return execute(_get_service().datasets().get(projectId=project, datasetId=dataset_id))
    except NotFoundError:
        return None

def insert_dataset(project: str, body: dict) -> dict:
    return execute(_get_service().datasets().insert(projectId=project, body=body))

def patch_dataset(project: str, dataset_id: str, body: dict) -> dict:
    return execute(_get_service().datasets().patch(projectId=project, datasetId=dataset_id, body=body))

def delete_dataset(project: str, dataset_id: str, force: bool = False) -> None:
    execute(_get_service().datasets().delete(projectId=project, datasetId=dataset_id, deleteContents=force))

def list_tables(project: str, dataset_id: str, convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().tables().list, "tables", convert, token,
                      projectId=project, datasetId=dataset_id, **params)

def get_table(project: str, dataset_id: str, table_id: str) -> dict|None:
    try:
        return execute(_get_service().tables().get(projectId=project, datasetId=dataset_id, tableId=table_id))
    except NotFoundError:
        return None

def insert_table(project: str, dataset_id: str, body: dict) -> dict:
    return execute(_get_service().tables().insert(projectId=project, datasetId=dataset_id, body=body))

def patch_table(project: str, dataset_id: str, table_id: str, body: dict) -> dict:
    return execute(_get_service().tables().patch(projectId=project, datasetId=dataset_id,
                                                 tableId=table_id, body=body))

def delete_table(project: str, dataset_id: str, table_id: str) -> None:
    execute(_get_service().tables().delete(projectId=project, datasetId=dataset_id, tableId=table_id))

def list_tabledata(project: str, dataset_id: str, table_id: str, **params) -> dict:
    """https://cloud.google.com/bigquery/docs/reference/rest/v2/tabledata/list"""
    params = {k: v for k, v in params.items() if v is not None}
    return execute(_get_service().tabledata().list(projectId=project, datasetId=dataset_id,
                                                   tableId=table_id, **params))

def insert_all(project: str, dataset_id: str, table_id: str, body: dict) -> dict:
    """https://cloud.google.com/bigquery/docs/reference/rest/v2/tabledata/insertAll"""
    return execute(_get_service().tabledata().insertAll(projectId=project, datasetId=dataset_id,
                                                        tableId=table_id, body=body))
