import json
from typing import Any, Dict, List


def process_json(file_content: bytes) -> List[Any]:
    """Parse a JSON document; a non-list value is wrapped as a single record."""
    data = json.loads(file_content.decode('utf-8-sig'))

    if isinstance(data, list):
        return data
    return [data]


def preview_json(file_content: bytes, limit: int = 5) -> List[Dict[str, Any]]:
    """Return the first ``limit`` records of a JSON document."""
    return process_json(file_content)[:limit]
