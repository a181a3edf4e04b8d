"""
Small string helpers shared by the sysfs, catalog and wire-format code.

The catalog scanner is not a JSON parser. It only slices out
balanced `{...}` substrings so each card object can be read field by field.
"""
from typing import List, Optional


def trim(value: Optional[str]) -> str:
    return (value or "").strip()


def to_upper(value: Optional[str]) -> str:
    return (value or "").upper()


def equal_after_uppercase(lhs: Optional[str], rhs: Optional[str]) -> bool:
    return to_upper(lhs) == to_upper(rhs)


def contains_after_uppercase(haystack: Optional[str], needle: Optional[str]) -> bool:
    return to_upper(needle) in to_upper(haystack)


_JSON_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def json_escape(value: Optional[str]) -> str:
    return "".join(_JSON_ESCAPES.get(ch, ch) for ch in (value or ""))


def normalize_id(value: Optional[str]) -> str:
    """
    Canonical vendor/device ID: "0x" + uppercase hex. "a81a", "0xa81a" and
    "0XA81A" all become "0xA81A". Empty stays empty.
    """
    s = trim(value)
    if not s:
        return ""
    if s[:2] in ("0x", "0X"):
        s = s[2:]
    return "0x" + s.upper()


def normalize_chipset(value: Optional[str]) -> str:
    return to_upper(trim(value))


def _find_container_start(content: str, key: str, opener: str) -> int:
    needle = f'"{key}"'
    key_pos = content.find(needle)
    if key_pos < 0:
        return -1
    colon_pos = content.find(":", key_pos + len(needle))
    if colon_pos < 0:
        return -1
    return content.find(opener, colon_pos + 1)


def _scan_objects(content: str, start: int, *, stop_at_array_end: bool, first_only: bool) -> List[str]:
    objects: List[str] = []
    in_string = False
    escape = False
    depth = 0
    obj_start = -1

    for pos in range(start, len(content)):
        ch = content[pos]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            if depth == 0:
                obj_start = pos
            depth += 1
        elif ch == "}":
            if depth > 0:
                depth -= 1
                if depth == 0 and obj_start >= 0:
                    objects.append(content[obj_start:pos + 1])
                    obj_start = -1
                    if first_only:
                        break
        elif ch == "]" and depth == 0 and stop_at_array_end:
            break

    return objects


def extract_array_objects(content: str, key: str) -> List[str]:
    """
    Return every top-level `{...}` inside the first `"key": [...]` array.

    Braces inside strings are ignored. An object left open at end of input is
    dropped; anything after the closing bracket is never looked at.
    """
    array_pos = _find_container_start(content or "", key, "[")
    if array_pos < 0:
        return []
    return _scan_objects(content, array_pos + 1, stop_at_array_end=True, first_only=False)


def extract_object_field(content: str, key: str) -> Optional[str]:
    obj_pos = _find_container_start(content or "", key, "{")
    if obj_pos < 0:
        return None
    found = _scan_objects(content, obj_pos, stop_at_array_end=False, first_only=True)
    return found[0] if found else None
