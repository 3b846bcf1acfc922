from collections.abc import Mapping, Sequence
from typing import Any

from expoflow.core.materials.normalizer import normalize_elements, signature


def materials_changed(
    existing: Sequence[Mapping[str, Any]] | None,
    incoming: Sequence[Mapping[str, Any]],
) -> bool:
    """Whether ``incoming`` differs materially from ``existing``.

    ``existing`` is ``None`` when no document has been saved yet, which never
    counts as a change. Quantities compare exactly.
    """
    if existing is None:
        return False
    if len(existing) != len(incoming):
        return True
    return signature(normalize_elements(existing)) != signature(normalize_elements(incoming))
