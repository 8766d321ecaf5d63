"""Shared fixtures for wynnplanner unit tests.

Nothing here touches the network or the real item cache: catalogs are built
from in-memory items, and the loader is driven by fake fetchers and stores.
"""
from typing import Optional

import pytest

from wynnplanner import Catalog, CatalogLoader, CatalogService, DataState, Item
from wynnplanner.store import StoredSnapshot

ZERO = (0, 0, 0, 0, 0)

# Raw entries shaped like the live item database response
RAW_ITEMS: dict[str, dict] = {
    "Cap": {
        "type": "armour", "armourType": "helmet", "rarity": "Rare", "identifier": True,
        "requirements": {"level": 1}, "identifications": {"rawStrength": 5},
    },
    "Iron Helm": {
        "type": "armour", "armourType": "helmet", "rarity": "Unique",
        "requirements": {"level": 20, "strength": 40},
    },
    "Tunic": {"type": "armour", "armourType": "chestplate", "rarity": "Common",
              "requirements": {"level": 1}},
    "Pants": {"type": "armour", "armourType": "leggings", "rarity": "Common",
              "requirements": {"level": 1}},
    "Sandals": {"type": "armour", "armourType": "boots", "rarity": "Common",
                "requirements": {"level": 1}},
    "Amulet": {
        "type": "accessory", "accessoryType": "necklace", "rarity": "Rare",
        "requirements": {"level": 5}, "identifications": {"rawIntelligence": 3},
    },
    "Band": {"type": "accessory", "accessoryType": "bracelet", "rarity": "Rare",
             "requirements": {"level": 1}},
    "Ring A": {
        "type": "accessory", "accessoryType": "ring", "rarity": "Legendary",
        "requirements": {"level": 50},
        "identifications": {"rawDexterity": {"min": 3, "max": 6}},
    },
    "Ring B": {
        "type": "accessory", "accessoryType": "ring", "rarity": "Rare",
        "requirements": {"level": 10, "defense": 15},
        "identifications": {"rawDefense": {"min": 1, "max": 2}},
    },
    "Oak Spear": {
        "type": "weapon", "weaponType": "spear", "rarity": "Common",
        "requirements": {"level": 1, "classRequirement": "Warrior"},
        "identifications": {"rawStrength": 10},
    },
    "Tome of Might": {
        "type": "tome", "tomeType": "weapon_tome", "rarity": "Fabled",
        "requirements": {"level": 80}, "identifications": {"rawStrength": 3},
    },
    "Glowing Moss": {"type": "ingredient", "requirements": {"level": 1}},
}


def _make_item(
    name: str,
    slot: str,
    *,
    level_req: int = 1,
    requirement: tuple = ZERO,
    bonus: tuple = ZERO,
    rarity: str = "Rare",
    identified: bool = True,
    class_req: Optional[str] = None,
    weapon_type: Optional[str] = None,
    set_name: Optional[str] = None,
) -> Item:
    return Item(
        name=name,
        slot=slot,
        rarity=rarity,
        level_req=level_req,
        requirement=requirement,
        display_bonus=bonus,
        identified=identified,
        class_req=class_req,
        weapon_type=weapon_type,
        set_name=set_name,
    )


class MemoryStore:
    """SnapshotStore kept in memory; tests set the snapshot age directly."""

    def __init__(self, payload: Optional[dict] = None, age_seconds: float = 0.0,
                 fail_writes: bool = False):
        self.payload = payload
        self.age_seconds = age_seconds
        self.fail_writes = fail_writes
        self.writes = 0

    def read(self) -> Optional[StoredSnapshot]:
        if self.payload is None:
            return None
        return StoredSnapshot(payload=self.payload, age_seconds=self.age_seconds)

    def write(self, payload: dict) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.payload = payload
        self.age_seconds = 0.0


class FakeFetcher:
    """Returns a fixed payload (or raises) and counts calls."""

    def __init__(self, payload: Optional[dict] = None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls = 0

    def __call__(self) -> dict:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return dict(self.payload or {})


@pytest.fixture
def make_item():
    """Factory for Item instances with neutral defaults."""
    return _make_item


@pytest.fixture
def raw_items() -> dict[str, dict]:
    return {name: dict(raw) for name, raw in RAW_ITEMS.items()}


@pytest.fixture
def catalog_service(raw_items: dict[str, dict]) -> CatalogService:
    """CatalogService over a fake live source and an empty in-memory store."""
    return CatalogService(CatalogLoader(FakeFetcher(raw_items), MemoryStore()))


@pytest.fixture
def sample_catalog() -> Catalog:
    """Small hand-built catalog covering every slot and most filter paths."""
    items = [
        _make_item("Cap", "helmet", bonus=(5, 0, 0, 0, 0)),
        _make_item("Iron Helm", "helmet", level_req=20, requirement=(40, 0, 0, 0, 0)),
        _make_item("Crown of Ages", "helmet", level_req=110),
        _make_item("Tunic", "chestplate", rarity="Common"),
        _make_item("Spiked Mail", "chestplate", level_req=30,
                   requirement=(0, 30, 0, 0, 0), bonus=(0, 0, 0, 0, -5)),
        _make_item("Pants", "leggings", rarity="Common"),
        _make_item("Sandals", "boots", rarity="Common"),
        _make_item("Stormstride", "boots", level_req=90, rarity="Mythic",
                   bonus=(0, 0, 0, 0, 10)),
        _make_item("Amulet", "necklace", bonus=(0, 0, 3, 0, 0)),
        _make_item("Band", "bracelet"),
        _make_item("Ring A", "ring", bonus=(2, 0, 0, 0, 0)),
        _make_item("Ring B", "ring", bonus=(0, 2, 0, 0, 0)),
        _make_item("Ring C", "ring", requirement=(0, 0, 0, 0, 10), rarity="Set",
                   set_name="Agile"),
        _make_item("Oak Spear", "weapon", weapon_type="spear", bonus=(10, 0, 0, 0, 0)),
        _make_item("Oak Wand", "weapon", weapon_type="wand"),
        _make_item("Tome of Might", "tome", level_req=80, bonus=(3, 0, 0, 0, 0)),
    ]
    return Catalog(items, DataState(source="live"), generation=1)
