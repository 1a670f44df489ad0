"""
Error Reporting: send errors to be grouped and counted, and read them back.
https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects.events

    try:
        process_order(order)
    except Exception as e:
        report_exception(e, "order-service", "1.4.2", user=order.customer)
        raise
"""
from dataclasses import dataclass, field
from functools import partial
from typing import List
import datetime
import traceback

from .access import gcp, execute
from .resources import GoogleCloudResourceBase, ResultList, compact, fetch_page, from_rfc3339, project_path, to_rfc3339

_get_service = partial(gcp.require_service, "clouderrorreporting", "v1beta1")

PERIODS = {
    "1h": "PERIOD_1_HOUR",
    "6h": "PERIOD_6_HOURS",
    "1d": "PERIOD_1_DAY",
    "1w": "PERIOD_1_WEEK",
    "30d": "PERIOD_30_DAYS",
}


def _period(period: str) -> str:
    p = PERIODS.get(str(period).lower(), str(period).upper())
    if p not in PERIODS.values():
        raise ValueError(f"Invalid time range period: {period}")
    return p


@dataclass
class ErrorEvent(GoogleCloudResourceBase):
    """https://cloud.google.com/error-reporting/reference/rest/v1beta1/ErrorEvent"""
    eventTime: str|None = field(default=None)
    serviceContext: dict = field(default_factory=dict)
    message: str|None = field(default=None)
    context: dict = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.message)

    def __str__(self) -> str:
        first_line = (self.message or "").splitlines()[:1]
        return f"{self.eventTime} {self.service}: {first_line[0] if first_line else ''}"

    @property
    def event_time(self) -> datetime.datetime|None:
        return from_rfc3339(self.eventTime)

    @property
    def service(self) -> str|None:
        return self.serviceContext.get("service")

    @property
    def version(self) -> str|None:
        return self.serviceContext.get("version")

    @property
    def user(self) -> str|None:
        return self.context.get("user")


@dataclass
class ErrorGroupStats(GoogleCloudResourceBase):
    """https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects.groupStats/list#ErrorGroupStats"""
    group: dict = field(default_factory=dict)
    count: int = field(default=0)
    affectedUsersCount: int = field(default=0)
    timedCounts: List[dict] = field(default_factory=list)
    firstSeenTime: str|None = field(default=None)
    lastSeenTime: str|None = field(default=None)
    affectedServices: List[dict] = field(default_factory=list)
    numAffectedServices: int|None = field(default=None)
    representative: dict|None = field(default=None)

    def __post_init__(self) -> None:
        self.fixup()

    def __str__(self) -> str:
        return f"{self.group_id}:{self.count}"

    def fixup(self) -> None:
        # int64 counts arrive as strings
        self.count = int(self.count or 0)
        self.affectedUsersCount = int(self.affectedUsersCount or 0)

    @property
    def group_id(self) -> str|None:
        return self.group.get("groupId")

    @property
    def first_seen(self) -> datetime.datetime|None:
        return from_rfc3339(self.firstSeenTime)

    @property
    def last_seen(self) -> datetime.datetime|None:
        return from_rfc3339(self.lastSeenTime)

    @property
    def representative_event(self) -> ErrorEvent|None:
        return None if self.representative is None else ErrorEvent.from_base(self.representative)


def _caller_location() -> dict|None:
    # first frame outside this module, whichever function here was called
    for frame, lineno in traceback.walk_stack(None):
        if frame.f_globals.get("__name__") != __name__:
            return {"filePath": frame.f_code.co_filename, "lineNumber": lineno,
                    "functionName": frame.f_code.co_name}
    return None


def report(message: str, service: str, version: str|None = None, user: str|None = None,
           http_request: dict|None = None, location: dict|None = None,
           event_time: datetime.datetime|None = None, project: str|None = None) -> bool:
    """
    https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects.events/report
    message should be a stack trace.  Anything else needs a location
    {"filePath", "lineNumber", "functionName"} to be accepted, which defaults
    to wherever report() was called from.
    """
    if location is None and not message.lstrip().startswith("Traceback"):
        location = _caller_location()
    body = compact({
        "eventTime": to_rfc3339(event_time),
        "serviceContext": compact({"service": service, "version": version}),
        "message": message,
        "context": compact({"user": user, "httpRequest": http_request, "reportLocation": location}) or None,
    })
    execute(_get_service().projects().events().report(projectName=project_path(project), body=body))
    return True


def report_exception(exc: BaseException, service: str, version: str|None = None,
                     user: str|None = None, http_request: dict|None = None,
                     project: str|None = None) -> bool:
    """Report an exception, the message is its formatted traceback."""
    message = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return report(message, service, version, user=user, http_request=http_request, project=project)


def events(group_id: str, service: str|None = None, version: str|None = None,
           period: str|None = None, max: int|None = None, token: str|None = None,
           project: str|None = None) -> ResultList:
    """https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects.events/list"""
    return fetch_page(_get_service().projects().events().list, "errorEvents", ErrorEvent.from_base, token,
                      projectName=project_path(project), groupId=group_id,
                      serviceFilter_service=service, serviceFilter_version=version,
                      timeRange_period=None if period is None else _period(period), pageSize=max)


def group_stats(period: str = "1d", service: str|None = None, version: str|None = None,
                group_ids: List[str]|None = None, order: str|None = None,
                max: int|None = None, token: str|None = None, project: str|None = None) -> ResultList:
    """
    https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects.groupStats/list
    period is 1h, 6h, 1d, 1w or 30d (or the PERIOD_ name).  order e.g. "COUNT_DESC".
    """
    return fetch_page(_get_service().projects().groupStats().list, "errorGroupStats",
                      ErrorGroupStats.from_base, token,
                      projectName=project_path(project), timeRange_period=_period(period),
                      serviceFilter_service=service, serviceFilter_version=version,
                      groupId=group_ids, order=order, pageSize=max)


def delete_events(project: str|None = None) -> bool:
    """https://cloud.google.com/error-reporting/reference/rest/v1beta1/projects/deleteEvents"""
    execute(_get_service().projects().deleteEvents(projectName=project_path(project)))
    return True
