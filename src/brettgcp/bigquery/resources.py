"""
Struct-like BigQuery resources and the conversion of tabledata rows.
https://cloud.google.com/bigquery/docs/reference/rest/v2/tables#TableSchema
"""
from dataclasses import dataclass, field
from typing import ClassVar, List, Self
import base64
import datetime
from decimal import Decimal

from ..resources import GoogleCloudResourceBase

@dataclass
class SchemaField(GoogleCloudResourceBase):
    """
    https://cloud.google.com/bigquery/docs/reference/rest/v2/tables#TableFieldSchema
    """
    name: str = field(default="")
    type: str = field(default="STRING")
    mode: str|None = field(default=None)
    description: str|None = field(default=None)
    fields: List[Self|dict]|None = field(default=None)

    valid_types: ClassVar[List[str]] = ["STRING", "BYTES", "INTEGER", "INT64", "FLOAT", "FLOAT64", "NUMERIC",
              "BIGNUMERIC", "BOOLEAN", "BOOL", "TIMESTAMP", "DATE", "TIME", "DATETIME",
              "GEOGRAPHY", "JSON", "RECORD", "STRUCT"]
    valid_modes: ClassVar[List[str]] = ["NULLABLE", "REQUIRED", "REPEATED"]

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.name)

    def fixup(self) -> None:
        self.type = str(self.type).upper()
        if self.type not in self.valid_types:
            raise ValueError(f"Invalid schema field type: {self.type}")
        if self.mode is not None:
            self.mode = str(self.mode).upper()
            if self.mode not in self.valid_modes:
                raise ValueError(f"Invalid schema field mode: {self.mode}")
        if self.fields is not None:
            self.fields = [f if isinstance(f, SchemaField) else SchemaField.from_base(f) for f in self.fields]

    @property
    def repeated(self) -> bool:
        return self.mode == "REPEATED"

    @property
    def record(self) -> bool:
        return self.type in ("RECORD", "STRUCT")

    def to_base(self) -> dict:
        self.fixup()
        b = {"name": self.name, "type": self.type}
        if self.mode:
            b["mode"] = self.mode
        if self.description:
            b["description"] = self.description
        if self.fields:
            b["fields"] = [f.to_base() for f in self.fields]
        return b


def schema_fields(schema: dict|List[SchemaField|dict]|None) -> List[SchemaField]:
    """Accepts {"fields": [...]} as the API returns it, or a plain list."""
    if not schema:
        return []
    flist = schema.get("fields", []) if isinstance(schema, dict) else schema
    return [f if isinstance(f, SchemaField) else SchemaField.from_base(f) for f in flist]


def schema_base(schema: dict|List[SchemaField|dict]|None) -> dict|None:
    if schema is None:
        return None
    return {"fields": [f.to_base() for f in schema_fields(schema)]}


def _format_value(f: SchemaField, value):
    if value is None:
        return None
    if f.record:
        return format_row(value, f.fields or [])
    t = f.type
    if t in ("INTEGER", "INT64"):
        return int(value)
    if t in ("FLOAT", "FLOAT64"):
        return float(value)
    if t in ("NUMERIC", "BIGNUMERIC"):
        return Decimal(value)
    if t in ("BOOLEAN", "BOOL"):
        return value if isinstance(value, bool) else str(value).lower() == "true"
    if t == "TIMESTAMP":
        # tabledata comes back as floating point epoch seconds
        return datetime.datetime.fromtimestamp(float(value), tz=datetime.timezone.utc)
    if t == "DATE":
        return datetime.date.fromisoformat(str(value))
    if t == "TIME":
        return datetime.time.fromisoformat(str(value))
    if t == "DATETIME":
        return datetime.datetime.fromisoformat(str(value))
    if t == "BYTES":
        return base64.b64decode(value)
    return value


def format_row(row: dict, flist: List[SchemaField]) -> dict:
    """
    Turn one {"f": [{"v": ...}, ...]} row into a dict keyed by field name.
    Repeated fields come back as {"v": [{"v": ...}, ...]}.
    """
    cells = row.get("f", []) if row else []
    out = {}
    for f, cell in zip(flist, cells):
        v = cell.get("v") if isinstance(cell, dict) else cell
        if f.repeated:
            out[f.name] = [_format_value(f, i.get("v") if isinstance(i, dict) else i) for i in (v or [])]
        else:
            out[f.name] = _format_value(f, v)
    return out


def format_rows(rows: List[dict]|None, schema) -> List[dict]:
    flist = schema_fields(schema)
    return [format_row(r, flist) for r in (rows or [])]


def to_json_value(value):
    """
    Inverse direction for streaming inserts: the JSON row wants plain JSON types.
    """
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value
