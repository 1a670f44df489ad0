"""
Conversion of Python values into BigQuery query parameters.
https://cloud.google.com/bigquery/docs/reference/rest/v2/QueryParameter

The type is inferred from the value, containers recurse:
  list/tuple -> ARRAY of the first element's type
  dict -> STRUCT with one field per key, in key order
"""
import base64
import datetime
from decimal import Decimal


def _timestamp_value(value: datetime.datetime) -> str:
    # naive datetimes are local time
    dt = value if value.tzinfo is not None else value.astimezone()
    offset = dt.utcoffset() or datetime.timedelta(0)
    minutes = int(offset.total_seconds() // 60)
    sign = "-" if minutes < 0 else "+"
    hh, mm = divmod(abs(minutes), 60)
    return f"{dt.strftime('%Y-%m-%d %H:%M:%S')}.{dt.microsecond // 1000:03d}{sign}{hh:02d}:{mm:02d}"


def param_type(value) -> dict:
    """The QueryParameterType for a value."""
    if value is None:
        return {"type": "STRING"}
    # bool is a subclass of int so has to go first, same for datetime and date
    if isinstance(value, bool):
        return {"type": "BOOL"}
    if isinstance(value, int):
        return {"type": "INT64"}
    if isinstance(value, float):
        return {"type": "FLOAT64"}
    if isinstance(value, Decimal):
        return {"type": "NUMERIC"}
    if isinstance(value, str):
        return {"type": "STRING"}
    if isinstance(value, (bytes, bytearray)):
        return {"type": "BYTES"}
    if isinstance(value, datetime.datetime):
        return {"type": "TIMESTAMP"}
    if isinstance(value, datetime.date):
        return {"type": "DATE"}
    if isinstance(value, datetime.time):
        return {"type": "TIME"}
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            raise ValueError("Cannot determine the type of an empty array parameter")
        return {"type": "ARRAY", "arrayType": param_type(value[0])}
    if isinstance(value, dict):
        return {"type": "STRUCT",
                "structTypes": [{"name": str(k), "type": param_type(v)} for k, v in value.items()]}
    raise TypeError(f"A query parameter of type {type(value).__name__} is not supported")


def param_value(value) -> dict:
    """The QueryParameterValue for a value.  An empty dict is NULL."""
    if value is None:
        return {}
    if isinstance(value, bool):
        return {"value": value}
    if isinstance(value, (int, float)):
        return {"value": value}
    if isinstance(value, Decimal):
        return {"value": str(value)}
    if isinstance(value, str):
        return {"value": value}
    if isinstance(value, (bytes, bytearray)):
        return {"value": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, datetime.datetime):
        return {"value": _timestamp_value(value)}
    if isinstance(value, datetime.date):
        return {"value": value.isoformat()}
    if isinstance(value, datetime.time):
        return {"value": value.strftime("%H:%M:%S.%f")}
    if isinstance(value, (list, tuple)):
        return {"arrayValues": [param_value(v) for v in value]}
    if isinstance(value, dict):
        return {"structValues": {str(k): param_value(v) for k, v in value.items()}}
    raise TypeError(f"A query parameter of type {type(value).__name__} is not supported")


def to_query_param(value, name: str|None = None) -> dict:
    """
    Build a single QueryParameter.  Positional parameters have no name.
    """
    param = {"parameterType": param_type(value),
             "parameterValue": param_value(value)}
    if name is not None:
        return {"name": str(name), **param}
    return param


def query_params(params: dict|list|tuple|None) -> tuple[str|None, list|None]:
    """
    Work out (parameterMode, queryParameters) for a query request.
    A dict gives NAMED parameters, a list/tuple POSITIONAL ones.
    """
    if params is None:
        return None, None
    if isinstance(params, dict):
        return "NAMED", [to_query_param(v, k) for k, v in params.items()]
    if isinstance(params, (list, tuple)):
        return "POSITIONAL", [to_query_param(v) for v in params]
    raise TypeError("Query params must be a dict (named) or a list (positional)")
