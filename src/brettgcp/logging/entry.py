"""
Log entries and the monitored resources they are written against.
https://cloud.google.com/logging/docs/reference/v2/rest/v2/LogEntry
"""
from dataclasses import dataclass, field, asdict
from typing import ClassVar, List, Self
from urllib.parse import quote, unquote
import datetime

from ..resources import GoogleCloudResourceBase, from_rfc3339, to_rfc3339

# LogSeverity names in ascending order with their numeric codes
SEVERITIES = {
    "DEFAULT": 0,
    "DEBUG": 100,
    "INFO": 200,
    "NOTICE": 300,
    "WARNING": 400,
    "ERROR": 500,
    "CRITICAL": 600,
    "ALERT": 700,
    "EMERGENCY": 800,
}
_SEVERITY_CODES = {v: k for k, v in SEVERITIES.items()}


def severity_name(severity: str|int|None) -> str:
    """
    Normalise a severity given as a name (any case) or the API's numeric code.
    """
    if severity is None:
        return "DEFAULT"
    if isinstance(severity, int) and not isinstance(severity, bool):
        if severity in _SEVERITY_CODES:
            return _SEVERITY_CODES[severity]
        raise ValueError(f"Invalid log severity: {severity}")
    s = str(severity).upper()
    if s not in SEVERITIES:
        raise ValueError(f"Invalid log severity: {severity}")
    return s


def log_path(name: str, project: str) -> str:
    """
    Full log resource name.  Names already in projects/... form pass through,
    bare names get URL-encoded as the API requires.
    """
    n = str(name)
    if n.startswith(("projects/", "organizations/", "folders/", "billingAccounts/")):
        return n
    return f"projects/{project}/logs/{quote(n, safe='')}"


def log_short_name(path: str|None) -> str|None:
    if path is None:
        return None
    _, sep, name = str(path).rpartition("/logs/")
    return unquote(name) if sep else path


@dataclass
class Resource(GoogleCloudResourceBase):
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/MonitoredResource
    e.g. Resource("gae_app", {"module_id": "1", "version_id": "20150925t173233"})
    """
    type: str = field(default="global")
    labels: dict = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.type)

    def __str__(self) -> str:
        return f"{self.type}{self.labels}"

    def to_base(self) -> dict:
        b = {"type": self.type}
        if self.labels:
            b["labels"] = dict(self.labels)
        return b


@dataclass
class Entry(GoogleCloudResourceBase):
    """
    https://cloud.google.com/logging/docs/reference/v2/rest/v2/LogEntry
    payload holds whichever of textPayload/jsonPayload/protoPayload the entry
    carries: a str is written as text, a dict as JSON.
    """
    logName: str|None = field(default=None)
    resource: Resource|dict|None = field(default=None)
    timestamp: datetime.datetime|str|None = field(default=None)
    receiveTimestamp: datetime.datetime|str|None = field(default=None)
    severity: str|int|None = field(default="DEFAULT")
    insertId: str|None = field(default=None)
    labels: dict|None = field(default=None)
    payload: str|dict|None = field(default=None)
    httpRequest: dict|None = field(default=None)
    operation: dict|None = field(default=None)
    trace: str|None = field(default=None)
    spanId: str|None = field(default=None)
    sourceLocation: dict|None = field(default=None)

    payload_keys: ClassVar[List[str]] = ["textPayload", "jsonPayload", "protoPayload"]

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return self.payload is not None

    def __str__(self) -> str:
        return f"{self.timestamp} {self.severity} {self.payload}"

    def fixup(self) -> None:
        self.severity = severity_name(self.severity)
        if self.resource is not None and not isinstance(self.resource, Resource):
            self.resource = Resource.from_base(dict(self.resource))
        if self.timestamp is not None and not isinstance(self.timestamp, datetime.datetime):
            self.timestamp = from_rfc3339(str(self.timestamp))
        if self.receiveTimestamp is not None and not isinstance(self.receiveTimestamp, datetime.datetime):
            self.receiveTimestamp = from_rfc3339(str(self.receiveTimestamp))

    @property
    def log_name(self) -> str|None:
        """The log name without the projects/.../logs/ prefix."""
        return log_short_name(self.logName)

    def is_default(self) -> bool:
        return self.severity == "DEFAULT"

    def is_debug(self) -> bool:
        return self.severity == "DEBUG"

    def is_info(self) -> bool:
        return self.severity == "INFO"

    def is_notice(self) -> bool:
        return self.severity == "NOTICE"

    def is_warning(self) -> bool:
        return self.severity == "WARNING"

    def is_error(self) -> bool:
        return self.severity == "ERROR"

    def is_critical(self) -> bool:
        return self.severity == "CRITICAL"

    def is_alert(self) -> bool:
        return self.severity == "ALERT"

    def is_emergency(self) -> bool:
        return self.severity == "EMERGENCY"

    def at_least(self, severity: str|int) -> bool:
        """Is this entry at or above the given severity?"""
        return SEVERITIES[self.severity] >= SEVERITIES[severity_name(severity)]

    def to_base(self) -> dict:
        self.fixup()
        b = asdict(self)
        payload = b.pop("payload")
        if isinstance(payload, dict):
            if "@type" in payload:
                b["protoPayload"] = payload
            else:
                b["jsonPayload"] = payload
        elif payload is not None:
            b["textPayload"] = str(payload)
        b["resource"] = self.resource.to_base() if self.resource else None
        b["timestamp"] = to_rfc3339(self.timestamp)
        b["receiveTimestamp"] = to_rfc3339(self.receiveTimestamp)
        return {k: v for k, v in b.items() if v is not None}

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = dict(base or {})
        payload = None
        for k in cls.payload_keys:
            if k in base:
                payload = base.pop(k)
                break
        entry = super().from_base(base)
        entry.payload = payload
        return entry
