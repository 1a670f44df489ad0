from dataclasses import asdict, fields, is_dataclass, dataclass, field
from collections.abc import Callable, Iterator
from typing import List, Self
import datetime

from .access import execute, gcp

class GoogleCloudResourceBase():
    """
    Intended to be subclassed by a dataclass but isnt actually a dataclass.
    Subclasses keep the API's own camelCase field names so the dict from the
    discovery client maps straight across.
    """
    def to_base(self) -> dict:
        """
        Default just return the dict representation of the object as needed by
        the API client.  Something more complicated can override.
        Also with a common base makes it easy to filter with isinstance.
        Call fixup() first to ensure all fields are in correct format.
        """
        self.fixup()
        return asdict(self)

    def trim(self) -> dict|None:
        """
        Return a 'trimmed' dict of the resource.  That is, removing any top level attributes
        that are an empty or None.  For empty needs to be a string, or container. For None
        needs to be a value like int or bool where 'not' could be a valid value.  This is
        for requests that only want filled-in fields.
        """
        b = self.to_base()
        if b:
            vals = dict(b.items())
            for k,v in vals.items():
                if v is None or (type(v) not in [int,bool,float] and not v):
                    del b[k]
        return b

    def fixup(self) -> None:
        """
        notify a subclass to do any field adjustments
        """
        pass

    def update_fields(self, **kwargs) -> List[str]:
        """
        Update fields that may be present.
        """
        updated_fields = []
        if is_dataclass(self):
            names = {f.name for f in fields(self)}
            for k,v in kwargs.items():
                if v is not None and k in names:
                    setattr(self, k, v)
                    updated_fields.append(k)
            self.fixup()
        return updated_fields

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        """
        The inverse of to_base().  The API adds fields over time so anything
        the dataclass doesn't know about is dropped rather than blowing up __init__.
        """
        if not base:
            return cls()
        names = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in dict(base).items() if k in names})


def compact(d: dict) -> dict:
    """Drop None values from a request dict, the API treats absent and null the same."""
    return {k: v for k, v in d.items() if v is not None}


def project_path(project: str|None = None) -> str:
    """projects/{project} with the default project filled in"""
    p = project or gcp.project
    if not p:
        raise ValueError("No project ID given and no default project configured")
    return f"projects/{p}"


def project_id(project: str|None = None) -> str:
    p = project or gcp.project
    if not p:
        raise ValueError("No project ID given and no default project configured")
    return str(p)


def to_rfc3339(value: datetime.datetime|datetime.date|str|None) -> str|None:
    """
    The REST APIs want RFC 3339 in UTC with the 'Z' suffix.
    Naive datetimes are taken as local time, same as datetime.astimezone().
    """
    if value is None or isinstance(value, str):
        return value
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time.min)
    value = value.astimezone(datetime.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def from_rfc3339(value: str|datetime.datetime|None) -> datetime.datetime|None:
    """
    Parse the API's timestamps.  They can carry nanoseconds which fromisoformat
    won't take so truncate to micro.
    """
    if value is None or isinstance(value, datetime.datetime):
        return value
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    if "." in s:
        head, _, rest = s.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits += rest[0]
            rest = rest[1:]
        s = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    dt = datetime.datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


class ResultList(list):
    """
    A single page of results from a list call.
    Iterating the list itself only covers the page that was fetched; use
    next() for the following page or all() to walk everything.
    """
    def __init__(self, items=(), token: str|None = None,
                 fetch: Callable[[str], Self]|None = None, **extra) -> None:
        super().__init__(items)
        self.token = token or None
        self._fetch = fetch
        # anything else the list response carried (e.g. unreachable regions, prefixes)
        self.extra = extra

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list.__repr__(self)}, token={self.token!r})"

    def has_next(self) -> bool:
        return bool(self.token) and self._fetch is not None

    def next(self) -> Self|None:
        if not self.has_next():
            return None
        return self._fetch(self.token)

    def all(self, max: int|None = None) -> Iterator:
        """
        Generator over this page and every page after it.
        Stops after max items if given.
        """
        page = self
        count = 0
        while page is not None:
            for item in page:
                if max is not None and count >= max:
                    return
                yield item
                count += 1
            page = page.next()


def fetch_page(method: Callable, items_key: str, convert: Callable,
               token: str|None = None,
               token_param: str = "pageToken",
               next_token_key: str = "nextPageToken",
               extra_keys: tuple = (),
               **kwargs) -> ResultList:
    """
    Call a discovery list method for one page and wrap the result.
    kwargs are the request parameters and are reused to fetch later pages.
    None valued parameters are dropped.
    """
    params = compact(kwargs)
    if token:
        params[token_param] = token
    response = execute(method(**params)) or {}
    items = [convert(i) for i in response.get(items_key, [])]

    def _fetch(next_token: str) -> ResultList:
        return fetch_page(method, items_key, convert, next_token,
                          token_param, next_token_key, extra_keys, **kwargs)

    extra = {k: response[k] for k in extra_keys if k in response}
    return ResultList(items, response.get(next_token_key), _fetch, **extra)


@dataclass
class Policy(GoogleCloudResourceBase):
    """
    https://cloud.google.com/iam/reference/rest/v1/Policy
    The API carries bindings as a list of {role, members}, which is a pain to
    edit, so hold them as role -> members and convert on the way in/out.
    """
    etag: str|None = field(default=None)
    version: int|None = field(default=None)
    roles: dict[str,List[str]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.etag) or bool(self.roles)

    def role(self, role: str) -> List[str]:
        return self.roles.setdefault(self._role_name(role), [])

    def add(self, role: str, member: str) -> None:
        members = self.role(role)
        if member not in members:
            members.append(member)

    def remove(self, role: str, member: str) -> None:
        r = self._role_name(role)
        members = self.roles.get(r, [])
        if member in members:
            members.remove(member)
        if not members:
            self.roles.pop(r, None)

    @staticmethod
    def _role_name(role: str) -> str:
        r = str(role)
        return r if r.startswith("roles/") else f"roles/{r}"

    def to_base(self) -> dict:
        b = {"bindings": [{"role": r, "members": list(m)} for r, m in self.roles.items() if m]}
        if self.etag:
            b["etag"] = self.etag
        if self.version is not None:
            b["version"] = self.version
        return b

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = base or {}
        roles = {}
        for binding in base.get("bindings", []):
            roles.setdefault(binding["role"], []).extend(binding.get("members", []))
        return cls(etag=base.get("etag"), version=base.get("version"), roles=roles)
