from typing import List

from ..resources import ResultList, compact, project_id as default_project, project_path
from . import ops
from .entry import Entry, Resource, log_path, log_short_name
from .async_writer import AsyncWriter
from .logger import Logger
from .resources import Metric, ResourceDescriptor, Sink

class Project():
    """
    Entry point to Cloud Logging, bound to one project.

        logging = Project()
        entry = logging.entry(payload="Job started.", severity="INFO")
        logging.write_entries(entry, log_name="my_app_log",
                              resource=logging.resource("gae_app", module_id="1"))
        for e in logging.entries(filter="severity>=ERROR").all(max=100):
            print(e)
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

    @property
    def path(self) -> str:
        return project_path(self.project)

    def entry(self, **kwargs) -> Entry:
        """A new Entry, kwargs are Entry fields."""
        return Entry(**kwargs)

    def resource(self, type: str, labels: dict|None = None, **kwargs) -> Resource:
        """e.g. resource("gae_app", module_id="1", version_id="20150925t173233")"""
        return Resource(type, {**(labels or {}), **kwargs})

    def entries(self, projects: List[str]|None = None, filter: str|None = None,
                order: str|None = None, max: int|None = None,
                token: str|None = None) -> ResultList:
        """
        https://cloud.google.com/logging/docs/reference/v2/rest/v2/entries/list
        projects defaults to this project.  order is "timestamp asc" (the default)
        or "timestamp desc".
        """
        names = [project_path(p) for p in (projects or [self.project])]
        return ops.list_entries(Entry.from_base, token, resourceNames=names,
                                filter=filter, orderBy=order, pageSize=max)

    def write_entries(self, entries: Entry|List[Entry], log_name: str|None = None,
                      resource: Resource|None = None, labels: dict|None = None,
                      partial_success: bool|None = None) -> bool:
        """
        https://cloud.google.com/logging/docs/reference/v2/rest/v2/entries/write
        log_name, resource and labels are defaults for entries that don't set their own.
        """
        elist = [entries] if isinstance(entries, Entry) else list(entries)
        rows = []
        for e in elist:
            b = e.to_base()
            if "logName" in b:
                b["logName"] = log_path(b["logName"], self.project)
            rows.append(b)
        body = compact({
            "logName": None if log_name is None else log_path(log_name, self.project),
            "resource": resource.to_base() if resource else None,
            "labels": labels or None,
            "partialSuccess": partial_success,
            "entries": rows,
        })
        ops.write_entries(body)
        return True

    def logger(self, log_name: str, resource: Resource|None = None, labels: dict|None = None) -> Logger:
        """A Logger writing synchronously through this project."""
        return Logger(self, log_name, resource if resource is not None else Resource("global"), labels)

    def async_writer(self, max_queue_size: int = 10000, max_batch_size: int = 500,
                     interval: float = 5.0) -> AsyncWriter:
        """A background writer for this project, see AsyncWriter."""
        return AsyncWriter(self, max_queue_size, max_batch_size, interval)

    def logs(self, resource: str|None = None, max: int|None = None,
             token: str|None = None) -> ResultList:
        """
        Short names of the logs that have entries.  resource is the parent,
        e.g. "organizations/123", defaulting to this project.
        """
        page = ops.list_logs(resource or self.path, token, pageSize=max)
        return ResultList([log_short_name(n) for n in page], page.token,
                          lambda t: self.logs(resource, max, t))

    def delete_log(self, name: str) -> bool:
        """https://cloud.google.com/logging/docs/reference/v2/rest/v2/projects.logs/delete"""
        ops.delete_log(log_path(name, self.project))
        return True

    def resource_descriptors(self, max: int|None = None, token: str|None = None) -> ResultList:
        return ops.list_resource_descriptors(ResourceDescriptor.from_base, token, pageSize=max)

    def _sink(self, gapi: dict) -> Sink:
        sink = Sink.from_base(gapi)
        sink.project = self.project
        return sink

    def sinks(self, max: int|None = None, token: str|None = None) -> ResultList:
        return ops.list_sinks(self.path, self._sink, token, pageSize=max)

    def sink(self, name: str) -> Sink|None:
        gapi = ops.get_sink(f"{self.path}/sinks/{name}")
        return None if gapi is None else self._sink(gapi)

    def create_sink(self, name: str, destination: str, filter: str|None = None,
                    unique_writer_identity: bool|None = None) -> Sink:
        """
        https://cloud.google.com/logging/docs/reference/v2/rest/v2/projects.sinks/create
        destination e.g. "storage.googleapis.com/my-bucket".  The destination
        has to grant writerIdentity access before anything arrives.
        """
        body = compact({"name": name, "destination": destination, "filter": filter})
        return self._sink(ops.create_sink(self.path, body, unique_writer_identity))

    def _metric(self, gapi: dict) -> Metric:
        metric = Metric.from_base(gapi)
        metric.project = self.project
        return metric

    def metrics(self, max: int|None = None, token: str|None = None) -> ResultList:
        return ops.list_metrics(self.path, self._metric, token, pageSize=max)

    def metric(self, name: str) -> Metric|None:
        gapi = ops.get_metric(f"{self.path}/metrics/{name}")
        return None if gapi is None else self._metric(gapi)

    def create_metric(self, name: str, filter: str, description: str|None = None) -> Metric:
        """https://cloud.google.com/logging/docs/reference/v2/rest/v2/projects.metrics/create"""
        body = compact({"name": name, "filter": filter, "description": description})
        return self._metric(ops.create_metric(self.path, body))
