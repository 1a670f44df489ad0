"""
Cloud Monitoring (v3) metric descriptors and time series.
https://cloud.google.com/monitoring/api/ref_v3/rest

    create_metric_descriptor("custom.googleapis.com/queue/depth", "GAUGE", "INT64",
                             description="Jobs waiting")
    write_point("custom.googleapis.com/queue/depth", 42)
    for ts in time_series('metric.type = "custom.googleapis.com/queue/depth"', minutes=60):
        print(ts.resource, [p.value for p in ts.points])
"""
from dataclasses import dataclass, field
from functools import partial
from typing import Any, List, Self
import datetime

from .access import gcp, execute
from .errors import NotFoundError
from .resources import (GoogleCloudResourceBase, ResultList, compact, fetch_page, from_rfc3339,
                        project_path, to_rfc3339)

_get_service = partial(gcp.require_service, "monitoring", "v3")

METRIC_KINDS = ("GAUGE", "DELTA", "CUMULATIVE")
VALUE_TYPES = ("BOOL", "INT64", "DOUBLE", "STRING", "DISTRIBUTION", "MONEY")
ALIGNERS = ("ALIGN_NONE", "ALIGN_DELTA", "ALIGN_RATE", "ALIGN_INTERPOLATE", "ALIGN_NEXT_OLDER",
            "ALIGN_MIN", "ALIGN_MAX", "ALIGN_MEAN", "ALIGN_COUNT", "ALIGN_SUM", "ALIGN_STDDEV",
            "ALIGN_COUNT_TRUE", "ALIGN_COUNT_FALSE", "ALIGN_FRACTION_TRUE", "ALIGN_PERCENTILE_99",
            "ALIGN_PERCENTILE_95", "ALIGN_PERCENTILE_50", "ALIGN_PERCENTILE_05", "ALIGN_PERCENT_CHANGE")
REDUCERS = ("REDUCE_NONE", "REDUCE_MEAN", "REDUCE_MIN", "REDUCE_MAX", "REDUCE_SUM", "REDUCE_STDDEV",
            "REDUCE_COUNT", "REDUCE_COUNT_TRUE", "REDUCE_COUNT_FALSE", "REDUCE_FRACTION_TRUE",
            "REDUCE_PERCENTILE_99", "REDUCE_PERCENTILE_95", "REDUCE_PERCENTILE_50", "REDUCE_PERCENTILE_05")


def _upper_choice(value: str|None, choices: tuple, what: str) -> str|None:
    if value is None:
        return None
    v = str(value).upper()
    if v not in choices:
        raise ValueError(f"Invalid {what}: {value}")
    return v


@dataclass
class MetricDescriptor(GoogleCloudResourceBase):
    """https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.metricDescriptors"""
    name: str|None = field(default=None)
    type: str|None = field(default=None)
    labels: List[dict] = field(default_factory=list)
    metricKind: str|None = field(default=None)
    valueType: str|None = field(default=None)
    unit: str|None = field(default=None)
    description: str|None = field(default=None)
    displayName: str|None = field(default=None)
    metadata: dict|None = field(default=None)
    launchStage: str|None = field(default=None)
    monitoredResourceTypes: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.type)

    def __str__(self) -> str:
        return f"{self.type}:{self.metricKind}:{self.valueType}" if self else "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    def is_custom(self) -> bool:
        return str(self.type).startswith(("custom.googleapis.com/", "external.googleapis.com/"))

    @property
    def label_keys(self) -> List[str]:
        return [l.get("key") for l in self.labels]

    def delete(self) -> bool:
        """Only custom metrics can be deleted."""
        execute(_get_service().projects().metricDescriptors().delete(name=self.name))
        return True


@dataclass
class Point():
    """One value of a time series over its interval."""
    value: Any = field(default=None)
    end: datetime.datetime|None = field(default=None)
    start: datetime.datetime|None = field(default=None)

    @classmethod
    def from_base(cls, base: dict) -> Self:
        interval = base.get("interval", {})
        return cls(_from_typed_value(base.get("value", {})),
                   from_rfc3339(interval.get("endTime")), from_rfc3339(interval.get("startTime")))


@dataclass
class TimeSeries(GoogleCloudResourceBase):
    """https://cloud.google.com/monitoring/api/ref_v3/rest/v3/TimeSeries"""
    metric: dict = field(default_factory=dict)
    resource: dict = field(default_factory=dict)
    metadata: dict|None = field(default=None)
    metricKind: str|None = field(default=None)
    valueType: str|None = field(default=None)
    points: List[Point] = field(default_factory=list)
    unit: str|None = field(default=None)

    def __post_init__(self) -> None:
        self.fixup()

    def __str__(self) -> str:
        return f"{self.metric_type}:{len(self.points)} points"

    def fixup(self) -> None:
        self.points = [p if isinstance(p, Point) else Point.from_base(p) for p in self.points or []]

    @property
    def metric_type(self) -> str|None:
        return self.metric.get("type")

    @property
    def metric_labels(self) -> dict:
        return self.metric.get("labels", {})

    @property
    def resource_type(self) -> str|None:
        return self.resource.get("type")


@dataclass
class MonitoredResourceDescriptor(GoogleCloudResourceBase):
    """https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.monitoredResourceDescriptors"""
    name: str|None = field(default=None)
    type: str|None = field(default=None)
    displayName: str|None = field(default=None)
    description: str|None = field(default=None)
    labels: List[dict] = field(default_factory=list)
    launchStage: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.type)

    def __str__(self) -> str:
        return str(self.type)

    @property
    def label_keys(self) -> List[str]:
        return [l.get("key") for l in self.labels]


def _typed_value(value: Any) -> dict:
    """https://cloud.google.com/monitoring/api/ref_v3/rest/v3/TypedValue, bool before int"""
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"int64Value": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, dict):
        # already a distribution
        return {"distributionValue": value}
    raise TypeError(f"Can't write a {type(value).__name__} as a metric value")


def _from_typed_value(value: dict) -> Any:
    if "boolValue" in value:
        return value["boolValue"]
    if "int64Value" in value:
        return int(value["int64Value"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    return value.get("distributionValue")


def metric_descriptors(filter: str|None = None, max: int|None = None, token: str|None = None,
                       project: str|None = None) -> ResultList:
    """
    https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.metricDescriptors/list
    e.g. filter='metric.type = starts_with("custom.googleapis.com/")'
    """
    return fetch_page(_get_service().projects().metricDescriptors().list, "metricDescriptors",
                      MetricDescriptor.from_base, token,
                      name=project_path(project), filter=filter, pageSize=max)


def metric_descriptor(type: str, project: str|None = None) -> MetricDescriptor|None:
    name = f"{project_path(project)}/metricDescriptors/{type}"
    try:
        return MetricDescriptor.from_base(execute(_get_service().projects().metricDescriptors().get(name=name)))
    except NotFoundError:
        return None


def create_metric_descriptor(type: str, metric_kind: str = "GAUGE", value_type: str = "DOUBLE",
                             description: str|None = None, display_name: str|None = None,
                             unit: str|None = None, labels: dict|List[dict]|None = None,
                             project: str|None = None) -> MetricDescriptor:
    """
    https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.metricDescriptors/create
    labels as a dict are string labels, key -> description.
    """
    if isinstance(labels, dict):
        labels = [{"key": k, "valueType": "STRING", "description": d} for k, d in labels.items()]
    body = compact({
        "type": type,
        "metricKind": _upper_choice(metric_kind, METRIC_KINDS, "metric kind"),
        "valueType": _upper_choice(value_type, VALUE_TYPES, "value type"),
        "description": description,
        "displayName": display_name,
        "unit": unit,
        "labels": labels or None,
    })
    gapi = execute(_get_service().projects().metricDescriptors().create(name=project_path(project), body=body))
    return MetricDescriptor.from_base(gapi)


def time_series(filter: str, start: datetime.datetime|None = None, end: datetime.datetime|None = None,
                minutes: int|None = None, alignment_period: int|None = None, aligner: str|None = None,
                reducer: str|None = None, group_by: List[str]|None = None, headers_only: bool = False,
                order: str|None = None, max: int|None = None, token: str|None = None,
                project: str|None = None) -> ResultList:
    """
    https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.timeSeries/list
    The interval ends at end (default now) and starts at start, or minutes
    before end.  alignment_period is in seconds and needed by aligner.
    """
    end = end or datetime.datetime.now(datetime.timezone.utc)
    if start is None and minutes is not None:
        start = end - datetime.timedelta(minutes=minutes)
    if aligner is not None and alignment_period is None:
        raise ValueError("An aligner needs an alignment_period")
    return fetch_page(_get_service().projects().timeSeries().list, "timeSeries", TimeSeries.from_base, token,
                      name=project_path(project), filter=filter,
                      interval_endTime=to_rfc3339(end), interval_startTime=to_rfc3339(start),
                      aggregation_alignmentPeriod=None if alignment_period is None else f"{int(alignment_period)}s",
                      aggregation_perSeriesAligner=_upper_choice(aligner, ALIGNERS, "aligner"),
                      aggregation_crossSeriesReducer=_upper_choice(reducer, REDUCERS, "reducer"),
                      aggregation_groupByFields=group_by,
                      view="HEADERS" if headers_only else None,
                      orderBy=order, pageSize=max)


def write_point(type: str, value: Any, resource: dict|None = None, labels: dict|None = None,
                end: datetime.datetime|None = None, start: datetime.datetime|None = None,
                project: str|None = None) -> bool:
    """
    https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.timeSeries/create
    Write one point to a custom metric.  resource defaults to the global
    resource for the project.  start is only for DELTA/CUMULATIVE metrics.
    """
    path = project_path(project)
    if resource is None:
        resource = {"type": "global", "labels": {"project_id": path.split("/")[1]}}
    interval = compact({"endTime": to_rfc3339(end or datetime.datetime.now(datetime.timezone.utc)),
                        "startTime": to_rfc3339(start)})
    series = {
        "metric": compact({"type": type, "labels": labels or None}),
        "resource": resource,
        "points": [{"interval": interval, "value": _typed_value(value)}],
    }
    execute(_get_service().projects().timeSeries().create(name=path, body={"timeSeries": [series]}))
    return True


def resource_descriptors(filter: str|None = None, max: int|None = None, token: str|None = None,
                         project: str|None = None) -> ResultList:
    """https://cloud.google.com/monitoring/api/ref_v3/rest/v3/projects.monitoredResourceDescriptors/list"""
    return fetch_page(_get_service().projects().monitoredResourceDescriptors().list, "resourceDescriptors",
                      MonitoredResourceDescriptor.from_base, token,
                      name=project_path(project), filter=filter, pageSize=max)
