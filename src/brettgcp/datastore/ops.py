"""
Thin wrappers for the Cloud Datastore v1 REST methods.
https://cloud.google.com/datastore/docs/reference/data/rest
"""
from functools import partial

from ..access import gcp, execute

_get_service = partial(gcp.require_service, "datastore", "v1")

def lookup(project: str, body: dict) -> dict:
    return execute(_get_service().projects().lookup(projectId=project, body=body)) or {}

def run_query(project: str, body: dict) -> dict:
    return execute(_get_service().projects().runQuery(projectId=project, body=body)) or {}

def commit(project: str, body: dict) -> dict:
    return execute(_get_service().projects().commit(projectId=project, body=body)) or {}

def allocate_ids(project: str, body: dict) -> dict:
    return execute(_get_service().projects().allocateIds(projectId=project, body=body)) or {}

def begin_transaction(project: str, body: dict|None = None) -> str:
    response = execute(_get_service().projects().beginTransaction(projectId=project, body=body or {}))
    return response["transaction"]

def rollback(project: str, transaction: str) -> None:
    execute(_get_service().projects().rollback(projectId=project, body={"transaction": transaction}))
