"""
Keys, entities and the conversion of Python values to and from Datastore Values.
https://cloud.google.com/datastore/docs/reference/data/rest/v1/Key
https://cloud.google.com/datastore/docs/reference/data/rest/v1/projects/runQuery#Value
"""
from dataclasses import dataclass
from typing import Any, Iterable, List, Self, Tuple
import base64
import datetime

from ..resources import compact, from_rfc3339, to_rfc3339


@dataclass(frozen=True)
class GeoPoint():
    latitude: float
    longitude: float

    def to_base(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


class Key():
    """
    A kind plus an integer id or string name, with an optional parent key.
    A key with neither id nor name is incomplete; Datastore allocates the id
    when the entity is saved.

        Key("TaskList", "default")
        Key("Task", 1234, parent=Key("TaskList", "default"))
    """

    def __init__(self, kind: str|None = None, id_or_name: int|str|None = None,
                 parent: Self|None = None, project: str|None = None,
                 namespace: str|None = None) -> None:
        self.kind = kind
        self.id: int|None = None
        self.name: str|None = None
        if isinstance(id_or_name, int) and not isinstance(id_or_name, bool):
            self.id = id_or_name
        elif id_or_name is not None:
            self.name = str(id_or_name)
        self.parent = parent
        self.project = project if project is not None else (parent.project if parent else None)
        self.namespace = namespace if namespace is not None else (parent.namespace if parent else None)

    def __repr__(self) -> str:
        return f"Key({', '.join(repr(p) for p in self.flat_path)})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return (self.path == other.path and self.project == other.project
                and self.namespace == other.namespace)

    def __hash__(self) -> int:
        return hash((tuple(self.path), self.project, self.namespace))

    @property
    def id_or_name(self) -> int|str|None:
        return self.id if self.id is not None else self.name

    def is_complete(self) -> bool:
        return self.id_or_name is not None

    def is_incomplete(self) -> bool:
        return not self.is_complete()

    @property
    def path(self) -> List[Tuple[str, int|str|None]]:
        """[(kind, id_or_name), ...] from the root ancestor down."""
        parent_path = self.parent.path if self.parent else []
        return parent_path + [(self.kind, self.id_or_name)]

    @property
    def flat_path(self) -> List:
        flat = []
        for kind, ident in self.path:
            flat.append(kind)
            if ident is not None:
                flat.append(ident)
        return flat

    def to_base(self) -> dict:
        elements = []
        for kind, ident in self.path:
            e = {"kind": kind}
            if isinstance(ident, int):
                # int64 travels as a string in JSON
                e["id"] = str(ident)
            elif ident is not None:
                e["name"] = ident
            elements.append(e)
        partition = compact({"projectId": self.project, "namespaceId": self.namespace})
        b = {"path": elements}
        if partition:
            b["partitionId"] = partition
        return b

    @classmethod
    def from_base(cls, base: dict) -> Self:
        partition = base.get("partitionId", {})
        key = None
        for e in base.get("path", []):
            ident = int(e["id"]) if "id" in e else e.get("name")
            key = cls(e.get("kind"), ident, parent=key,
                      project=partition.get("projectId"), namespace=partition.get("namespaceId"))
        return key if key is not None else cls(project=partition.get("projectId"),
                                               namespace=partition.get("namespaceId"))


class Entity(dict):
    """
    The properties of an entity, as a dict, plus its key.
    Names in exclude_from_indexes are stored but not indexed, which
    long strings and blobs need.

        task = Entity(Key("Task"), description="Learn Cloud Datastore", done=False)
        task.exclude_from_indexes.add("description")
    """

    def __init__(self, key: Key|None = None, exclude_from_indexes: Iterable[str] = (), **properties) -> None:
        super().__init__(**properties)
        self.key = key
        self.exclude_from_indexes = set(exclude_from_indexes)

    def __repr__(self) -> str:
        return f"Entity({self.key!r}, {dict.__repr__(self)})"

    def __eq__(self, other) -> bool:
        if isinstance(other, Entity):
            return self.key == other.key and dict.__eq__(self, other)
        return dict.__eq__(self, other)

    __hash__ = None

    def is_persisted(self) -> bool:
        return self.key is not None and self.key.is_complete()

    def to_base(self) -> dict:
        props = {name: to_value(v, name in self.exclude_from_indexes) for name, v in self.items()}
        b = {"properties": props}
        if self.key is not None:
            b["key"] = self.key.to_base()
        return b

    @classmethod
    def from_base(cls, base: dict) -> Self:
        key = Key.from_base(base["key"]) if "key" in base else None
        entity = cls(key)
        for name, value in base.get("properties", {}).items():
            entity[name] = from_value(value)
            if _is_excluded(value):
                entity.exclude_from_indexes.add(name)
        return entity


def _is_excluded(value: dict) -> bool:
    if "arrayValue" in value:
        values = value["arrayValue"].get("values", [])
        return bool(values) and all(v.get("excludeFromIndexes") for v in values)
    return bool(value.get("excludeFromIndexes"))


def to_value(v: Any, exclude: bool = False) -> dict:
    """
    Python value to a Datastore Value dict.  bool is checked before int as
    bool is an int.  Lists can't carry excludeFromIndexes themselves so it
    goes on each element.
    """
    if isinstance(v, (list, tuple)):
        return {"arrayValue": {"values": [to_value(i, exclude) for i in v]}}
    if v is None:
        value = {"nullValue": "NULL_VALUE"}
    elif isinstance(v, bool):
        value = {"booleanValue": v}
    elif isinstance(v, int):
        value = {"integerValue": str(v)}
    elif isinstance(v, float):
        value = {"doubleValue": v}
    elif isinstance(v, str):
        value = {"stringValue": v}
    elif isinstance(v, (bytes, bytearray)):
        value = {"blobValue": base64.b64encode(bytes(v)).decode("ascii")}
    elif isinstance(v, (datetime.datetime, datetime.date)):
        value = {"timestampValue": to_rfc3339(v)}
    elif isinstance(v, GeoPoint):
        value = {"geoPointValue": v.to_base()}
    elif isinstance(v, Key):
        value = {"keyValue": v.to_base()}
    elif isinstance(v, Entity):
        value = {"entityValue": v.to_base()}
    elif isinstance(v, dict):
        embedded = Entity()
        embedded.update(v)
        value = {"entityValue": embedded.to_base()}
    else:
        raise TypeError(f"A value of type {type(v).__name__} can't be stored in Datastore")
    if exclude:
        value["excludeFromIndexes"] = True
    return value


def from_value(value: dict) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "blobValue" in value:
        return base64.b64decode(value["blobValue"])
    if "timestampValue" in value:
        return from_rfc3339(value["timestampValue"])
    if "geoPointValue" in value:
        gp = value["geoPointValue"]
        return GeoPoint(gp.get("latitude", 0.0), gp.get("longitude", 0.0))
    if "keyValue" in value:
        return Key.from_base(value["keyValue"])
    if "entityValue" in value:
        return Entity.from_base(value["entityValue"])
    if "arrayValue" in value:
        return [from_value(v) for v in value["arrayValue"].get("values", [])]
    raise ValueError(f"Unrecognised Datastore value: {value}")
