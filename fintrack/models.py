from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from fintrack.schema import OWNER_FIELD


@dataclass(frozen=True)
class OwnerScope:
    """Ownership filter for per-user records (transactions, goals)."""

    owner: str
    field: str = OWNER_FIELD

    def filter(self, **extra: Any) -> Dict[str, Any]:
        q: Dict[str, Any] = dict(extra)
        q[self.field] = self.owner
        return q

    def stamp(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(doc)
        out[self.field] = self.owner
        return out
