"""
Text encodings for non-primitive row fields.

Lists and maps are stored as compact JSON; their elements (ids, opaque
attachment strings) are never interpreted.
"""
import json
from typing import Any, Dict, List, Optional


def dump_list(values: Optional[List[Any]]) -> str:
    return json.dumps(list(values or []), separators=(",", ":"))


def load_list(value: Optional[str]) -> List[Any]:
    if not value:
        return []
    return json.loads(value)


def dump_map(values: Optional[Dict[str, Any]]) -> str:
    return json.dumps(dict(values or {}), sort_keys=True, separators=(",", ":"))


def load_map(value: Optional[str]) -> Dict[str, Any]:
    if not value:
        return {}
    return json.loads(value)


def bool_to_text(value: bool) -> str:
    return "true" if value else "false"


def text_to_bool(value: Optional[str]) -> bool:
    return value == "true"
