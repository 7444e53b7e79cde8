"""
JSON helpers for list/map columns stored as text.
"""

import json
from typing import Any, Iterable, List, Optional


def encode_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def decode_json(value: Any, default: Any = None) -> Any:
    # PostgreSQL JSON columns may already come back decoded
    if value is None or value == "":
        return default
    if isinstance(value, (list, dict)):
        return value
    return json.loads(value)


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop empties, de-duplicate keeping first occurrence."""
    seen = set()
    result = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            result.append(tag)
    return result
