"""
Sinks, logs-based metrics and monitored resource descriptors.
"""
from dataclasses import dataclass, field
from typing import List, Self

from ..resources import GoogleCloudResourceBase, compact
from . import ops

@dataclass
class ResourceDescriptor(GoogleCloudResourceBase):
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/monitoredResourceDescriptors/list
    Describes the resource types and labels that entries can be written against.
    """
    name: str|None = field(default=None)
    type: str|None = field(default=None)
    displayName: str|None = field(default=None)
    description: str|None = field(default=None)
    labels: List[dict] = field(default_factory=list)
    launchStage: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.type)

    def __str__(self) -> str:
        return str(self.type) if self else "<empty>"

    @property
    def label_keys(self) -> List[str]:
        return [l.get("key") for l in self.labels]


@dataclass
class Sink(GoogleCloudResourceBase):
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/projects.sinks
    Exports matching entries to a bucket, dataset or topic.  name is the short
    name, project is kept alongside to build the resource path.
    """
    name: str|None = field(default=None)
    destination: str|None = field(default=None)
    filter: str|None = field(default=None)
    description: str|None = field(default=None)
    disabled: bool|None = field(default=None)
    writerIdentity: str|None = field(default=None)
    includeChildren: bool|None = field(default=None)
    createTime: str|None = field(default=None)
    updateTime: str|None = field(default=None)
    project: str|None = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return bool(self.name) and bool(self.destination)

    def __str__(self) -> str:
        return f"{self.name}->{self.destination}" if self else "<empty>"

    @property
    def path(self) -> str:
        return f"projects/{self.project}/sinks/{self.name}"

    def to_base(self) -> dict:
        return compact({"name": self.name, "destination": self.destination, "filter": self.filter,
                        "description": self.description, "disabled": self.disabled,
                        "includeChildren": self.includeChildren})

    def save(self, unique_writer_identity: bool|None = None) -> Self:
        """Update the sink upstream with the current destination/filter."""
        gapi = ops.update_sink(self.path, self.to_base(), unique_writer_identity)
        self.update_fields(**gapi)
        return self

    def reload(self) -> Self:
        gapi = ops.get_sink(self.path)
        if gapi:
            self.update_fields(**gapi)
        return self

    def delete(self) -> bool:
        ops.delete_sink(self.path)
        return True


@dataclass
class Metric(GoogleCloudResourceBase):
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/projects.metrics
    A logs-based metric counting entries that match filter.
    """
    name: str|None = field(default=None)
    description: str|None = field(default=None)
    filter: str|None = field(default=None)
    metricDescriptor: dict|None = field(default=None)
    valueExtractor: str|None = field(default=None)
    labelExtractors: dict|None = field(default=None)
    createTime: str|None = field(default=None)
    updateTime: str|None = field(default=None)
    project: str|None = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return bool(self.name) and bool(self.filter)

    def __str__(self) -> str:
        return f"{self.name}:{self.filter}" if self else "<empty>"

    @property
    def path(self) -> str:
        return f"projects/{self.project}/metrics/{self.name}"

    def to_base(self) -> dict:
        return compact({"name": self.name, "description": self.description, "filter": self.filter,
                        "valueExtractor": self.valueExtractor, "labelExtractors": self.labelExtractors,
                        "metricDescriptor": self.metricDescriptor})

    def save(self) -> Self:
        gapi = ops.update_metric(self.path, self.to_base())
        self.update_fields(**gapi)
        return self

    def reload(self) -> Self:
        gapi = ops.get_metric(self.path)
        if gapi:
            self.update_fields(**gapi)
        return self

    def delete(self) -> bool:
        ops.delete_metric(self.path)
        return True
