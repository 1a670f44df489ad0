"""
Cloud DNS managed zones, record sets and changes.
https://cloud.google.com/dns/docs/reference/v1

Every change to a zone's records also bumps the serial in its SOA record,
unless skip_soa is given, so secondaries notice the update.
"""
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Self
import copy
import logging
import time

from .access import gcp, execute
from .errors import NotFoundError
from .resources import GoogleCloudResourceBase, ResultList, compact, fetch_page, from_rfc3339, project_id

logger = logging.getLogger(__name__)

_get_service = partial(gcp.require_service, "dns", "v1")


@dataclass
class Record(GoogleCloudResourceBase):
    """
    https://cloud.google.com/dns/docs/reference/v1/resourceRecordSets
    A resource record set: all the data for one name and type.
    """
    name: str|None = field(default=None)
    type: str|None = field(default=None)
    ttl: int|None = field(default=None)
    rrdatas: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.name) and bool(self.type)

    def __str__(self) -> str:
        return f"{self.name} {self.ttl} {self.type} {' '.join(self.rrdatas)}"

    def fixup(self) -> None:
        if isinstance(self.rrdatas, str):
            self.rrdatas = [self.rrdatas]
        self.rrdatas = list(self.rrdatas or [])
        if self.type is not None:
            self.type = str(self.type).upper()
        if self.ttl is not None:
            self.ttl = int(self.ttl)

    @property
    def data(self) -> List[str]:
        return self.rrdatas

    def to_base(self) -> dict:
        self.fixup()
        return compact({"kind": "dns#resourceRecordSet", "name": self.name, "type": self.type,
                        "ttl": self.ttl, "rrdatas": list(self.rrdatas)})


@dataclass
class Change(GoogleCloudResourceBase):
    """https://cloud.google.com/dns/docs/reference/v1/changes"""
    id: str|None = field(default=None)
    status: str|None = field(default=None)
    startTime: str|None = field(default=None)
    additions: List[Record] = field(default_factory=list)
    deletions: List[Record] = field(default_factory=list)
    isServing: bool|None = field(default=None)
    zone: "Zone|None" = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.id)

    def __str__(self) -> str:
        return f"{self.id}:{self.status}" if self else "<empty>"

    def fixup(self) -> None:
        self.additions = [r if isinstance(r, Record) else Record.from_base(r) for r in self.additions or []]
        self.deletions = [r if isinstance(r, Record) else Record.from_base(r) for r in self.deletions or []]

    @property
    def started_at(self):
        return from_rfc3339(self.startTime)

    def done(self) -> bool:
        return self.status == "done"

    def pending(self) -> bool:
        return self.status == "pending"

    def reload(self) -> Self:
        gapi = execute(_get_service().changes().get(project=self.zone.project, managedZone=self.zone.name,
                                                    changeId=self.id))
        self.update_fields(**gapi)
        return self

    def wait_until_done(self, timeout: float|None = None, max_delay: float = 60.0) -> Self:
        """Poll with a growing delay until the change is done."""
        delay = 1.0
        start = time.monotonic()
        while not self.done():
            if timeout is not None and time.monotonic() - start >= timeout:
                raise TimeoutError(f"DNS change {self.id} not done after {timeout}s")
            time.sleep(delay)
            delay = min(delay * 2, max_delay)
            self.reload()
        return self


_SORT_ORDERS = {"asc": "ascending", "ascending": "ascending",
                "desc": "descending", "descending": "descending"}


def _next_serial(soa_data: str, soa_serial: int|Callable[[int], int]|None) -> str:
    """
    SOA data is "mname rname serial refresh retry expire minimum".
    soa_serial replaces the serial, as an int or a function of the current one.
    """
    parts = soa_data.split()
    current = int(parts[2])
    if soa_serial is None:
        serial = current + 1
    elif callable(soa_serial):
        serial = soa_serial(current)
    else:
        serial = int(soa_serial)
    parts[2] = str(serial)
    return " ".join(parts)


@dataclass
class Zone(GoogleCloudResourceBase):
    """
    https://cloud.google.com/dns/docs/reference/v1/managedZones

        zone = create_zone("example-com", "example.com.")
        zone.add("www", "A", 86400, ["1.2.3.4"])
        zone.replace("mail", "MX", 3600, ["10 mail1.example.com.", "20 mail2.example.com."])
    """
    id: str|None = field(default=None)
    name: str|None = field(default=None)
    dnsName: str|None = field(default=None)
    description: str|None = field(default=None)
    nameServers: List[str] = field(default_factory=list)
    nameServerSet: str|None = field(default=None)
    creationTime: str|None = field(default=None)
    visibility: str|None = field(default=None)
    labels: dict|None = field(default=None)
    project: str|None = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return bool(self.name) and bool(self.dnsName)

    def __str__(self) -> str:
        return f"{self.name}:{self.dnsName}" if self else "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def dns(self) -> str|None:
        return self.dnsName

    @property
    def created_at(self):
        return from_rfc3339(self.creationTime)

    def fqdn(self, name: str|None) -> str:
        """
        Fully qualify a record name within the zone: "" and "@" are the apex,
        names ending in "." are already qualified.
        """
        n = (name or "").strip()
        if n in ("", "@"):
            return self.dnsName
        if n.endswith("."):
            return n
        return f"{n}.{self.dnsName}"

    def delete(self, force: bool = False) -> bool:
        """
        A zone has to be empty apart from its apex NS and SOA records to be
        deleted.  force removes the other records first.
        """
        if force:
            self.clear()
        execute(_get_service().managedZones().delete(project=self.project, managedZone=self.name))
        return True

    def clear(self) -> None:
        """Remove every record except the apex NS and SOA."""
        others = [r for r in self.records().all()
                  if not (r.name == self.dnsName and r.type in ("NS", "SOA"))]
        if others:
            self.update(deletions=others, skip_soa=True)

    def records(self, name: str|None = None, type: str|None = None,
                max: int|None = None, token: str|None = None) -> ResultList:
        """https://cloud.google.com/dns/docs/reference/v1/resourceRecordSets/list"""
        if type is not None and name is None:
            raise ValueError("A record type filter needs a name too")
        return fetch_page(_get_service().resourceRecordSets().list, "rrsets", Record.from_base, token,
                          project=self.project, managedZone=self.name,
                          name=None if name is None else self.fqdn(name),
                          type=None if type is None else str(type).upper(),
                          maxResults=max)

    def record(self, name: str, type: str, ttl: int, data: str|List[str]) -> Record:
        """A new Record for this zone, name is qualified with fqdn()."""
        return Record(self.fqdn(name), type, ttl, data)

    def changes(self, order: str = "asc", max: int|None = None, token: str|None = None) -> ResultList:
        """https://cloud.google.com/dns/docs/reference/v1/changes/list, order is asc or desc"""
        sort_order = _SORT_ORDERS.get(str(order).lower())
        if sort_order is None:
            raise ValueError(f"Invalid sort order: {order}")
        return fetch_page(_get_service().changes().list, "changes", self._change, token,
                          project=self.project, managedZone=self.name,
                          sortBy="changeSequence", sortOrder=sort_order, maxResults=max)

    def change(self, change_id: str) -> Change|None:
        try:
            return self._change(execute(_get_service().changes().get(
                project=self.project, managedZone=self.name, changeId=change_id)))
        except NotFoundError:
            return None

    def _change(self, gapi: dict) -> Change:
        change = Change.from_base(gapi)
        change.zone = self
        return change

    def update(self, additions: List[Record]|None = None, deletions: List[Record]|None = None,
               skip_soa: bool = False, soa_serial: int|Callable[[int], int]|None = None) -> Change|None:
        """
        https://cloud.google.com/dns/docs/reference/v1/changes/create
        Apply additions and deletions as one change.  Unless skip_soa the
        SOA serial is incremented (or set from soa_serial) in the same change.
        Returns None when there is nothing to do.
        """
        additions = list(additions or [])
        deletions = list(deletions or [])
        if not additions and not deletions:
            return None
        if not skip_soa:
            soa = next(iter(self.records(self.dnsName, "SOA")), None)
            if soa is not None and soa not in deletions:
                new_soa = copy.deepcopy(soa)
                new_soa.rrdatas = [_next_serial(soa.rrdatas[0], soa_serial)]
                deletions.append(soa)
                additions.append(new_soa)
        body = {"additions": [r.to_base() for r in additions],
                "deletions": [r.to_base() for r in deletions]}
        change = self._change(execute(_get_service().changes().create(
            project=self.project, managedZone=self.name, body=body)))
        logger.debug("zone %s change %s: +%d -%d", self.name, change.id, len(additions), len(deletions))
        return change

    def add(self, name: str, type: str, ttl: int, data: str|List[str],
            skip_soa: bool = False, soa_serial: int|Callable[[int], int]|None = None) -> Change|None:
        return self.update([self.record(name, type, ttl, data)], skip_soa=skip_soa, soa_serial=soa_serial)

    def remove(self, name: str, type: str, skip_soa: bool = False,
               soa_serial: int|Callable[[int], int]|None = None) -> Change|None:
        """Remove the record set for name and type, if there is one."""
        existing = list(self.records(name, type).all())
        return self.update(deletions=existing, skip_soa=skip_soa, soa_serial=soa_serial)

    def replace(self, name: str, type: str, ttl: int, data: str|List[str],
                skip_soa: bool = False, soa_serial: int|Callable[[int], int]|None = None) -> Change|None:
        """Swap whatever is there for name and type for the new data."""
        existing = list(self.records(name, type).all())
        return self.update([self.record(name, type, ttl, data)], existing,
                           skip_soa=skip_soa, soa_serial=soa_serial)

    def modify(self, name: str, type: str, callback: Callable[[Record], None],
               skip_soa: bool = False, soa_serial: int|Callable[[int], int]|None = None) -> Change|None:
        """
        Edit the existing record set in place:
            zone.modify("www", "CNAME", lambda r: setattr(r, "ttl", 3600))
        """
        existing = list(self.records(name, type).all())
        updated = []
        for r in existing:
            r2 = copy.deepcopy(r)
            callback(r2)
            updated.append(r2)
        return self.update(updated, existing, skip_soa=skip_soa, soa_serial=soa_serial)


def _zone(gapi: dict, project: str) -> Zone:
    zone = Zone.from_base(gapi)
    zone.project = project
    return zone


def zones(max: int|None = None, token: str|None = None, project: str|None = None) -> ResultList:
    """https://cloud.google.com/dns/docs/reference/v1/managedZones/list"""
    p = project_id(project)
    return fetch_page(_get_service().managedZones().list, "managedZones", lambda z: _zone(z, p), token,
                      project=p, maxResults=max)


def zone(zone_id: str, project: str|None = None) -> Zone|None:
    """zone_id is the zone's name or numeric id."""
    p = project_id(project)
    try:
        return _zone(execute(_get_service().managedZones().get(project=p, managedZone=zone_id)), p)
    except NotFoundError:
        return None


def create_zone(name: str, dns: str, description: str|None = None,
                name_server_set: str|None = None, project: str|None = None) -> Zone:
    """
    https://cloud.google.com/dns/docs/reference/v1/managedZones/create
    dns is the domain, e.g. "example.com." (the trailing dot is added if missing).
    """
    p = project_id(project)
    dns_name = dns if dns.endswith(".") else f"{dns}."
    body = compact({"name": name, "dnsName": dns_name, "description": description or "",
                    "nameServerSet": name_server_set})
    return _zone(execute(_get_service().managedZones().create(project=p, body=body)), p)
