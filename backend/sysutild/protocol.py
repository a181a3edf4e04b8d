"""
Line protocol helpers: typed field lookup on inbound lines and rendering of
outbound JSON-shaped lines.

Lookups find the first `"key":` in the line and decode only the value that
follows it, so a line with trailing garbage still yields its leading fields.
"""
import json
import re
from typing import Any, Iterable, Optional, Tuple

from sysutild.textutil import json_escape

_DECODER = json.JSONDecoder()
_MISSING = object()


class RawJson(str):
    """Pre-rendered JSON fragment, inserted verbatim by encode_line()."""


def _field_value(line: str, key: str) -> Any:
    if not line:
        return _MISSING
    m = re.search(r'"%s"\s*:\s*' % re.escape(key), line)
    if not m:
        return _MISSING
    try:
        value, _end = _DECODER.raw_decode(line, m.end())
    except ValueError:
        return _MISSING
    return value


def extract_string_field(line: str, key: str) -> Optional[str]:
    value = _field_value(line, key)
    return value if isinstance(value, str) else None


def extract_int_field(line: str, key: str) -> Optional[int]:
    value = _field_value(line, key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def extract_bool_field(line: str, key: str) -> Optional[bool]:
    value = _field_value(line, key)
    return value if isinstance(value, bool) else None


def _render(value: Any) -> str:
    if isinstance(value, RawJson):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return '"' + json_escape(str(value)) + '"'


def encode_object(fields: Iterable[Tuple[str, Any]]) -> str:
    return "{" + ",".join(f'"{json_escape(k)}":{_render(v)}' for k, v in fields) + "}"


def encode_line(fields: Iterable[Tuple[str, Any]]) -> str:
    return encode_object(fields) + "\n"


def encode_array(items: Iterable[str]) -> RawJson:
    return RawJson("[" + ",".join(items) + "]")
