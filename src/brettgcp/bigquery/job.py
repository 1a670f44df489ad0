from dataclasses import dataclass, field
from typing import List, Self
import datetime
import time
import logging

from ..errors import GoogleCloudError
from ..resources import GoogleCloudResourceBase
from . import ops
from .data import QueryData

logger = logging.getLogger(__name__)

def _from_epoch_ms(ms) -> datetime.datetime:
    """Job statistics times are epoch milliseconds as strings."""
    return datetime.datetime.fromtimestamp(int(ms) / 1000.0, tz=datetime.timezone.utc)

@dataclass
class Job(GoogleCloudResourceBase):
    """
    https://cloud.google.com/bigquery/docs/reference/rest/v2/Job
    Any job type.  Query jobs come back as QueryJob from from_gapi().
    """
    kind: str|None = field(default=None)
    etag: str|None = field(default=None)
    id: str|None = field(default=None)
    selfLink: str|None = field(default=None)
    user_email: str|None = field(default=None)
    jobReference: dict = field(default_factory=dict)
    configuration: dict = field(default_factory=dict)
    status: dict = field(default_factory=dict)
    statistics: dict = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.job_id)

    def __str__(self) -> str:
        if self:
            return f"{self.job_id}:{self.state}"
        return "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @staticmethod
    def from_gapi(gapi: dict) -> "Job":
        if "query" in (gapi or {}).get("configuration", {}):
            return QueryJob.from_base(gapi)
        return Job.from_base(gapi)

    @property
    def job_id(self) -> str|None:
        return self.jobReference.get("jobId")

    @property
    def project_id(self) -> str|None:
        return self.jobReference.get("projectId")

    @property
    def location(self) -> str|None:
        return self.jobReference.get("location")

    @property
    def state(self) -> str|None:
        return self.status.get("state")

    def running(self) -> bool:
        return self.state == "RUNNING"

    def pending(self) -> bool:
        return self.state == "PENDING"

    def done(self) -> bool:
        return self.state == "DONE"

    def failed(self) -> bool:
        return self.done() and bool(self.status.get("errorResult"))

    @property
    def error(self) -> dict|None:
        return self.status.get("errorResult")

    @property
    def errors(self) -> List[dict]:
        return self.status.get("errors", [])

    @property
    def created_at(self):
        ms = self.statistics.get("creationTime")
        return None if ms is None else _from_epoch_ms(ms)

    @property
    def started_at(self):
        ms = self.statistics.get("startTime")
        return None if ms is None else _from_epoch_ms(ms)

    @property
    def ended_at(self):
        ms = self.statistics.get("endTime")
        return None if ms is None else _from_epoch_ms(ms)

    def reload(self) -> Self:
        gapi = ops.get_job(self.project_id, self.job_id)
        if gapi:
            self.update_fields(**gapi)
        return self

    def cancel(self) -> Self:
        response = ops.cancel_job(self.project_id, self.job_id)
        if response and response.get("job"):
            self.update_fields(**response["job"])
        return self

    def rerun(self) -> "Job":
        """Insert a new job with the same configuration."""
        return Job.from_gapi(ops.insert_job(self.project_id, {"configuration": self.configuration}))

    def wait_until_done(self, timeout: float|None = None, max_delay: float = 60.0) -> Self:
        """
        Poll the job with a growing delay until it reaches DONE.
        Raises the mapped GoogleCloudError if the job failed, TimeoutError if
        timeout seconds pass first.
        """
        delay = 1.0
        start = time.monotonic()
        while not self.done():
            if timeout is not None and time.monotonic() - start >= timeout:
                raise TimeoutError(f"BigQuery job {self.job_id} not done after {timeout}s")
            time.sleep(delay)
            delay = min(delay * 2, max_delay)
            self.reload()
            logger.debug("job %s state %s", self.job_id, self.state)
        if self.failed():
            err = self.error or {}
            raise GoogleCloudError(err.get("message", "job failed"), reason=err.get("reason"),
                                   details=self.errors)
        return self


@dataclass
class QueryJob(Job):
    """
    A job running a query.
    """
    @property
    def query(self) -> str|None:
        return self.configuration.get("query", {}).get("query")

    @property
    def destination(self) -> dict|None:
        return self.configuration.get("query", {}).get("destinationTable")

    @property
    def legacy_sql(self) -> bool:
        return bool(self.configuration.get("query", {}).get("useLegacySql", False))

    @property
    def parameters(self) -> List[dict]:
        return self.configuration.get("query", {}).get("queryParameters", [])

    @property
    def cache_hit(self) -> bool:
        return bool(self.statistics.get("query", {}).get("cacheHit", False))

    @property
    def bytes_processed(self) -> int|None:
        v = self.statistics.get("query", {}).get("totalBytesProcessed")
        return None if v is None else int(v)

    def query_results(self, max: int|None = None, timeout: int|None = None,
                      token: str|None = None, start: int|None = None) -> QueryData:
        """https://cloud.google.com/bigquery/docs/reference/rest/v2/jobs/getQueryResults"""
        response = ops.get_query_results(self.project_id, self.job_id, maxResults=max,
                                         timeoutMs=timeout, pageToken=token,
                                         startIndex=None if start is None else str(start),
                                         location=self.location)
        return QueryData(response, self.project_id)
