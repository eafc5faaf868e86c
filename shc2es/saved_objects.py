"""Prefixing of Kibana saved-object exports for multi-deployment setups.

Several deployments can share one Kibana instance when every saved object
(and every reference to it) carries the deployment's prefix. Dashboards are
retitled to the prefix and index patterns are pointed at ``<prefix>-*`` so
they match the prefixed daily indices.
"""

from __future__ import annotations

import json
from typing import Any, Iterable


def is_export_metadata(obj: Any) -> bool:
    """True for the summary record Kibana appends to every export."""
    return isinstance(obj, dict) and "exportedCount" in obj and "type" not in obj


def prefix_id(prefix: str, object_id: str) -> str:
    return f"{prefix}-{object_id}"


def prefix_saved_object(obj: dict, prefix: str) -> dict:
    """Return a prefixed copy of a single saved object."""
    prefixed = dict(obj)
    prefixed["id"] = prefix_id(prefix, obj["id"])

    references = obj.get("references")
    if references is not None:
        prefixed["references"] = [
            {**ref, "id": prefix_id(prefix, ref["id"])} for ref in references
        ]

    if obj.get("type") == "dashboard":
        prefixed["attributes"] = {**obj.get("attributes", {}), "title": prefix}
    elif obj.get("type") == "index-pattern":
        prefixed["attributes"] = {
            **obj.get("attributes", {}),
            "title": f"{prefix}-*",
            "name": prefix,
        }

    return prefixed


def prefix_saved_objects(objects: Iterable[dict], prefix: str) -> list[dict]:
    """
    Prefix a whole saved-object graph.

    Args:
        objects: Saved objects in export order, optionally ending with export metadata
        prefix: Deployment prefix (normally the index prefix)

    Returns:
        New list of objects; the input is not modified
    """
    return [
        obj if is_export_metadata(obj) else prefix_saved_object(obj, prefix)
        for obj in objects
    ]


def parse_ndjson(ndjson: str) -> list[dict]:
    return [json.loads(line) for line in ndjson.strip().splitlines() if line.strip()]


def prefix_dashboard_ndjson(ndjson: str, prefix: str) -> str:
    """
    Prefix an NDJSON export.

    The export metadata line is copied through byte for byte.
    """
    lines = []
    for line in ndjson.strip().splitlines():
        if not line.strip():
            continue
        obj = json.loads(line)
        if is_export_metadata(obj):
            lines.append(line)
        else:
            lines.append(json.dumps(prefix_saved_object(obj, prefix)))
    return "\n".join(lines)
