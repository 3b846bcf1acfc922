"""Canonical, order-independent representation of a materials element set.

Elements may arrive as persisted rows dumped to snake_case dicts or as
client payloads in camelCase; both normalize to the same structure::

    {
        "<elementType>|<name>": {
            "type": ..., "category": ..., "included": ...,
            "materials": [{"description", "unit", "quantity", "additional", "included"}, ...],
        },
    }

Elements that share a key are all kept, suffixed ``#2``, ``#3`` ... after
sorting by content so the result does not depend on input order.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Iterable, Mapping
from typing import Any


def _pick(data: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def normalize_material(material: Mapping[str, Any]) -> dict:
    return {
        "description": str(material.get("description") or ""),
        "unit": str(_pick(material, "unit_of_measurement", "unitOfMeasurement", "") or ""),
        "quantity": float(material.get("quantity") or 0),
        "additional": bool(_pick(material, "is_additional", "isAdditional", False)),
        "included": bool(_pick(material, "is_included", "isIncluded", True)),
    }


def _material_sort_key(material: dict) -> tuple:
    return (
        material["description"],
        material["unit"],
        material["quantity"],
        material["additional"],
        material["included"],
    )


def normalize_element(element: Mapping[str, Any]) -> tuple[str, dict]:
    element_type = str(_pick(element, "element_type", "elementType", "") or "")
    name = str(element.get("name") or "")
    materials = [normalize_material(m) for m in element.get("materials") or []]
    materials.sort(key=_material_sort_key)
    return f"{element_type}|{name}", {
        "type": element_type,
        "category": str(_plain(element.get("category")) or ""),
        "included": bool(_pick(element, "is_included", "isIncluded", True)),
        "materials": materials,
    }


def suffixed(keys: Iterable[str]) -> list[str]:
    """``keys`` with repeats suffixed ``#2``, ``#3`` ... in the order they occur."""
    seen: dict[str, int] = {}
    result = []
    for key in keys:
        seen[key] = seen.get(key, 0) + 1
        result.append(key if seen[key] == 1 else f"{key}#{seen[key]}")
    return result


def normalize_elements(elements: Iterable[Mapping[str, Any]]) -> dict[str, dict]:
    grouped: dict[str, list[dict]] = {}
    for element in elements:
        key, entry = normalize_element(element)
        grouped.setdefault(key, []).append(entry)

    normalized: dict[str, dict] = {}
    for key in sorted(grouped):
        entries = sorted(grouped[key], key=signature)
        normalized.update(zip(suffixed([key] * len(entries)), entries))
    return normalized


def signature(normalized: Any) -> str:
    """Deterministic serialization used for equality checks."""
    return json.dumps(normalized, sort_keys=True, separators=(",", ":"))
