"""Companion shop: extra slots bought with player XP."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ShopPet:
    shop_id: str
    name: str
    emoji: str
    preset_level: int
    cost: int  # player XP


PET_SHOP: Mapping[str, ShopPet] = MappingProxyType(
    {
        p.shop_id: p
        for p in (
            ShopPet("dragon", "Dragon", "🐉", preset_level=3, cost=500),
            ShopPet("phoenix", "Phoenix", "🔥", preset_level=4, cost=750),
            ShopPet("unicorn", "Unicorn", "🦄", preset_level=5, cost=1000),
            ShopPet("robot", "Robot", "🤖", preset_level=2, cost=300),
            ShopPet("butterfly", "Butterfly", "🦋", preset_level=2, cost=250),
            ShopPet("lion", "Lion", "🦁", preset_level=4, cost=800),
        )
    }
)
