"""
Thin wrappers for the Cloud Logging v2 REST methods.
https://cloud.google.com/logging/docs/reference/v2/rest
"""
from functools import partial
from typing import Callable

from ..access import gcp, execute
from ..errors import NotFoundError
from ..resources import ResultList, fetch_page

_get_service = partial(gcp.require_service, "logging", "v2")

def list_entries(convert: Callable, token: str|None = None, **body) -> ResultList:
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/entries/list
    entries.list is a POST so paging goes in the body rather than the query string
    which fetch_page doesn't do, hence the local paging here.
    """
    b = {k: v for k, v in body.items() if v is not None}
    if token:
        b["pageToken"] = token
    response = execute(_get_service().entries().list(body=b)) or {}
    items = [convert(e) for e in response.get("entries", [])]
    return ResultList(items, response.get("nextPageToken"),
                      lambda t: list_entries(convert, t, **body))

def write_entries(body: dict) -> dict:
    """https://cloud.google.com/logging/docs/reference/v2/rest/v2/entries/write"""
    return execute(_get_service().entries().write(body=body))

def list_logs(parent: str, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().projects().logs().list, "logNames", str, token, parent=parent, **params)

def delete_log(log_name: str) -> None:
    execute(_get_service().projects().logs().delete(logName=log_name))

def list_resource_descriptors(convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().monitoredResourceDescriptors().list, "resourceDescriptors",
                      convert, token, **params)

def list_sinks(parent: str, convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().projects().sinks().list, "sinks", convert, token, parent=parent, **params)

def get_sink(sink_name: str) -> dict|None:
    try:
        return execute(_get_service().projects().sinks().get(sinkName=sink_name))
    except NotFoundError:
        return None

def create_sink(parent: str, body: dict, unique_writer_identity: bool|None = None) -> dict:
    params = {"parent": parent, "body": body}
    if unique_writer_identity is not None:
        params["uniqueWriterIdentity"] = unique_writer_identity
    return execute(_get_service().projects().sinks().create(**params))

def update_sink(sink_name: str, body: dict, unique_writer_identity: bool|None = None) -> dict:
    params = {"sinkName": sink_name, "body": body}
    if unique_writer_identity is not None:
        params["uniqueWriterIdentity"] = unique_writer_identity
    return execute(_get_service().projects().sinks().update(**params))

def delete_sink(sink_name: str) -> None:
    execute(_get_service().projects().sinks().delete(sinkName=sink_name))

def list_metrics(parent: str, convert: Callable, token: str|None = None, **params) -> ResultList:
    return fetch_page(_get_service().projects().metrics().list, "metrics", convert, token, parent=parent, **params)

def get_metric(metric_name: str) -> dict|None:
    try:
        return execute(_get_service().projects().metrics().get(metricName=metric_name))
    except NotFoundError:
        return None

def create_metric(parent: str, body: dict) -> dict:
    return execute(_get_service().projects().metrics().create(parent=parent, body=body))

def update_metric(metric_name: str, body: dict) -> dict:
    return execute(_get_service().projects().metrics().update(metricName=metric_name, body=body))

def delete_metric(metric_name: str) -> None:
    execute(_get_service().projects().metrics().delete(metricName=metric_name))
