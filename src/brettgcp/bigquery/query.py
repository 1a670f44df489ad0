"""
Assembly of query request bodies, shared by Project and Dataset.
https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/query#request-body
https://cloud.google.com/bigquery/docs/reference/rest/v2/Job#JobConfigurationQuery
"""
import re

from ..resources import compact
from .params import query_params

_PRIORITIES = ["INTERACTIVE", "BATCH"]
_CREATE_DISPOSITIONS = {
    "needed": "CREATE_IF_NEEDED",
    "create_if_needed": "CREATE_IF_NEEDED",
    "never": "CREATE_NEVER",
    "create_never": "CREATE_NEVER",
}
_WRITE_DISPOSITIONS = {
    "truncate": "WRITE_TRUNCATE",
    "write_truncate": "WRITE_TRUNCATE",
    "append": "WRITE_APPEND",
    "write_append": "WRITE_APPEND",
    "empty": "WRITE_EMPTY",
    "write_empty": "WRITE_EMPTY",
}

# project:dataset.table, project.dataset.table, dataset.table
_TABLE_REF_RE = re.compile(r"^(?:(?P<project>[^:.]+(?::[^:.]+)?)[:.])?(?P<dataset>[^:.]+)\.(?P<table>[^:.]+)$")


def dataset_ref(dataset, project: str) -> dict|None:
    """DatasetReference from a Dataset or a 'dataset' / 'project:dataset' string."""
    if dataset is None:
        return None
    if hasattr(dataset, "dataset_ref"):
        return dict(dataset.dataset_ref)
    s = str(dataset)
    if ":" in s:
        p, _, d = s.rpartition(":")
        return {"datasetId": d, "projectId": p}
    return {"datasetId": s, "projectId": project}


def table_ref(table, project: str) -> dict|None:
    """TableReference from a Table or a 'project:dataset.table' style string."""
    if table is None:
        return None
    if hasattr(table, "table_ref"):
        return dict(table.table_ref)
    m = _TABLE_REF_RE.match(str(table))
    if not m:
        raise ValueError(f"Unable to parse table reference: {table}")
    return {"projectId": m.group("project") or project,
            "datasetId": m.group("dataset"),
            "tableId": m.group("table")}


def _disposition(value: str|None, valid: dict, what: str) -> str|None:
    if value is None:
        return None
    v = str(value)
    if v in valid.values():
        return v
    d = valid.get(v.lower())
    if d is None:
        raise ValueError(f"Invalid {what} disposition: {value}")
    return d


def _check_params(params, legacy_sql: bool) -> None:
    if params is not None and legacy_sql:
        raise ValueError("Query parameters are only supported by standard SQL")


def query_request(query: str, project: str, params=None, max: int|None = None,
                  timeout: int = 10000, dryrun: bool|None = None, cache: bool = True,
                  dataset=None, legacy_sql: bool = False) -> dict:
    """Body for jobs.query"""
    _check_params(params, legacy_sql)
    mode, qparams = query_params(params)
    return compact({
        "query": query,
        "timeoutMs": timeout,
        "useQueryCache": cache,
        "useLegacySql": legacy_sql,
        "parameterMode": mode,
        "queryParameters": qparams,
        "defaultDataset": dataset_ref(dataset, project),
        "dryRun": dryrun,
        "maxResults": max,
    })


def query_job_request(query: str, project: str, params=None, priority: str = "INTERACTIVE",
                      cache: bool = True, table=None, create: str|None = None,
                      write: str|None = None, dataset=None, large_results: bool|None = None,
                      flatten: bool|None = None, maximum_billing_tier: int|None = None,
                      legacy_sql: bool = False, dryrun: bool|None = None,
                      job_id: str|None = None, labels: dict|None = None) -> dict:
    """Job resource body for jobs.insert with a query configuration"""
    _check_params(params, legacy_sql)
    p = str(priority).upper()
    if p not in _PRIORITIES:
        raise ValueError(f"Invalid query priority: {priority}")
    mode, qparams = query_params(params)
    config = compact({
        "query": query,
        "priority": p,
        "useQueryCache": cache,
        "destinationTable": table_ref(table, project),
        "createDisposition": _disposition(create, _CREATE_DISPOSITIONS, "create"),
        "writeDisposition": _disposition(write, _WRITE_DISPOSITIONS, "write"),
        "allowLargeResults": large_results,
        "flattenResults": flatten,
        "defaultDataset": dataset_ref(dataset, project),
        "maximumBillingTier": maximum_billing_tier,
        "useLegacySql": legacy_sql,
        "parameterMode": mode,
        "queryParameters": qparams,
    })
    body = {"configuration": compact({"query": config, "dryRun": dryrun, "labels": labels})}
    if job_id:
        body["jobReference"] = {"projectId": project, "jobId": job_id}
    return body
