"""Explicit partial updates: only fields the client actually sent are applied."""
from typing import Any, Dict, Iterable

from pydantic import BaseModel


def apply_update(
    instance: Any,
    patch: BaseModel,
    *,
    exclude: Iterable[str] = (),
    nullable: Iterable[str] = (),
) -> Dict[str, Any]:
    """Copy the fields set on ``patch`` onto ``instance``.

    Fields named in ``exclude`` are left for the caller to handle (passwords,
    nested collections). An explicit ``None`` only clears a field listed in
    ``nullable``; otherwise it is ignored. Returns the fields that changed.
    """
    skipped = set(exclude)
    clearable = set(nullable)
    changed: Dict[str, Any] = {}
    for field, value in patch.model_dump(exclude_unset=True).items():
        if field in skipped:
            continue
        if value is None and field not in clearable:
            continue
        if getattr(instance, field) != value:
            setattr(instance, field, value)
            changed[field] = value
    return changed
