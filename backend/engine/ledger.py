"""
Resource ledger: three independent capped pools (wood, stone, food).
Ledgers are immutable; every operation returns a new ledger or None when it cannot be applied.
"""

from dataclasses import dataclass, replace
from typing import Any

RESOURCE_IDS = ("wood", "stone", "food")


def _clamp(value: int, cap: int) -> int:
    return max(0, min(value, cap))


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ResourceLedger:
    wood: int = 0
    stone: int = 0
    food: int = 0
    cap_wood: int = 500
    cap_stone: int = 500
    cap_food: int = 500

    def __post_init__(self):
        # Normalise on construction so a ledger can never hold negative or over-cap values
        for resource_id in RESOURCE_IDS:
            cap = max(0, getattr(self, f"cap_{resource_id}"))
            object.__setattr__(self, f"cap_{resource_id}", cap)
            object.__setattr__(self, resource_id, _clamp(getattr(self, resource_id), cap))

    def balance(self, resource_id: str) -> int:
        return getattr(self, resource_id)

    def cap(self, resource_id: str) -> int:
        return getattr(self, f"cap_{resource_id}")

    def balances(self) -> dict[str, int]:
        return {r: self.balance(r) for r in RESOURCE_IDS}

    def can_afford(self, cost: dict[str, int]) -> bool:
        return all(self.balance(r) >= max(0, cost.get(r, 0)) for r in RESOURCE_IDS)

    def spend(self, cost: dict[str, int]) -> "ResourceLedger | None":
        """Deduct cost from every pool at once. Returns None (nothing deducted) if any pool is short."""
        if not self.can_afford(cost):
            return None
        return replace(self, **{r: self.balance(r) - max(0, cost.get(r, 0)) for r in RESOURCE_IDS})

    def add(self, amounts: dict[str, int]) -> "ResourceLedger":
        """Add amounts to each pool, clamped at the pool's cap."""
        return replace(self, **{
            r: _clamp(self.balance(r) + amounts.get(r, 0), self.cap(r)) for r in RESOURCE_IDS
        })

    def apply_round_bonus(self, bonus: dict[str, int]) -> "ResourceLedger":
        """balance' = min(balance + bonus, cap) for every pool."""
        return self.add({r: max(0, bonus.get(r, 0)) for r in RESOURCE_IDS})

    def to_dict(self) -> dict[str, int]:
        return {
            "wood": self.wood,
            "stone": self.stone,
            "food": self.food,
            "cap_wood": self.cap_wood,
            "cap_stone": self.cap_stone,
            "cap_food": self.cap_food,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_cap: int = 500) -> "ResourceLedger":
        if not isinstance(data, dict):
            data = {}
        return cls(
            wood=_int(data.get("wood"), 0),
            stone=_int(data.get("stone"), 0),
            food=_int(data.get("food"), 0),
            cap_wood=_int(data.get("cap_wood", data.get("resourceCapWood")), default_cap),
            cap_stone=_int(data.get("cap_stone", data.get("resourceCapStone")), default_cap),
            cap_food=_int(data.get("cap_food", data.get("resourceCapFood")), default_cap),
        )
