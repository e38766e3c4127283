# hc_core/common/patch.py
from __future__ import annotations

from dataclasses import fields
from typing import Any, Mapping


class _Unset:
    """Marker for a patch slot the caller did not supply."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class FieldPatch:
    """
    Mixin for dataclass patches: one slot per mutable attribute, default UNSET.

    - UNSET       -> field untouched
    - None        -> clear (only meaningful for nullable attributes)
    - any value   -> set
    """

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def supplied(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not UNSET:
                out[f.name] = value
        return out

    def is_empty(self) -> bool:
        return not self.supplied()
