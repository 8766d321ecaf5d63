"""
Item catalog: normalizes the raw item database into an indexed snapshot.

A Catalog is immutable once built. CatalogLoader decides where the raw
payload comes from (fresh disk cache, live fetch, or stale fallback) and
CatalogService swaps whole snapshots so readers never see a partial one.
"""
import logging
import math
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional

import httpx
import orjson

from wynnplanner.constants import (
    CATALOG_TTL_SECONDS, GEAR_SLOTS, ITEM_DATABASE_URL,
)
from wynnplanner.models import DataState, Item, SkillVector
from wynnplanner.store import SnapshotStore

logger = logging.getLogger(__name__)

SOURCE_FRESH_CACHE = "cache:fresh"
SOURCE_LIVE = "live"
SOURCE_STALE_FALLBACK = "cache:stale-fallback"

Fetcher = Callable[[], dict]


class PlannerError(Exception):
    """Base class for errors raised by wynnplanner."""


class FetchError(PlannerError):
    """The live item database could not be retrieved."""


class DataUnavailable(PlannerError):
    """No live data and no durable snapshot to fall back on."""


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _as_number(value: Any) -> int:
    """Identification value as an int; ranged values use the rounded midpoint."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _round_half_up(value)
    if isinstance(value, Mapping):
        lo, hi = value.get("min"), value.get("max")
        if isinstance(lo, (int, float)) and isinstance(hi, (int, float)):
            return _round_half_up((lo + hi) / 2)
        raw = value.get("raw")
        if isinstance(raw, (int, float)):
            return _as_number(raw)
    return 0


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def requirement_vector(req: Mapping[str, Any]) -> SkillVector:
    return (
        _as_int(req.get("strength")),
        _as_int(req.get("dexterity")),
        _as_int(req.get("intelligence")),
        _as_int(req.get("defence", req.get("defense"))),
        _as_int(req.get("agility")),
    )


def bonus_vector(ids: Mapping[str, Any]) -> SkillVector:
    return (
        _as_number(ids.get("rawStrength")),
        _as_number(ids.get("rawDexterity")),
        _as_number(ids.get("rawIntelligence")),
        _as_number(ids.get("rawDefence", ids.get("rawDefense"))),
        _as_number(ids.get("rawAgility")),
    )


def slot_from_item(raw: Mapping[str, Any]) -> Optional[str]:
    """Equipment slot from type fields; tomes are matched by substring."""
    item_type = str(raw.get("type") or "").lower()
    slot: Optional[str] = None
    if item_type in ("armour", "armor") and raw.get("armourType"):
        slot = str(raw["armourType"]).lower()
    elif item_type in ("accessory", "accessories") and raw.get("accessoryType"):
        slot = str(raw["accessoryType"]).lower()
    elif item_type == "weapon" and raw.get("weaponType"):
        slot = "weapon"
    if slot in GEAR_SLOTS:
        return slot

    sub_type = str(raw.get("subType") or "").lower()
    if "tome" in item_type or "tome" in sub_type:
        return "tome"
    return None


def class_requirement(req: Mapping[str, Any]) -> Optional[str]:
    value = req.get("classRequirement") or req.get("class_requirement")
    return str(value).lower() if value else None


def set_name_best_effort(raw: Mapping[str, Any]) -> Optional[str]:
    value = raw.get("set") or raw.get("setName") or raw.get("set_name")
    return str(value) if value else None


def normalize_item(name: str, raw: Mapping[str, Any]) -> Optional[Item]:
    """Item from one raw database entry, or None if it has no equipment slot."""
    if not isinstance(raw, Mapping):
        return None
    slot = slot_from_item(raw)
    if slot is None:
        return None
    req = raw.get("requirements") or {}
    weapon_type = raw.get("weaponType")
    return Item(
        name=name,
        slot=slot,
        rarity=str(raw.get("rarity") or "unknown"),
        level_req=max(0, _as_int(req.get("level"))),
        requirement=requirement_vector(req),
        display_bonus=bonus_vector(raw.get("identifications") or {}),
        class_req=class_requirement(req),
        weapon_type=str(weapon_type).lower() if weapon_type else None,
        identified=bool(raw.get("identifier", False)),
        set_name=set_name_best_effort(raw),
    )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class Catalog:
    """Immutable, indexed view of every equippable item (not Pydantic, internal use)."""

    def __init__(self, items: Iterable[Item], data_state: Optional[DataState] = None,
                 generation: int = 0):
        self.items: tuple[Item, ...] = tuple(items)
        self.data_state = data_state or DataState()
        self.generation = generation

        by_name: dict[str, Item] = {}
        by_slot: dict[str, list[Item]] = {}
        by_rarity: dict[str, list[Item]] = {}
        for it in self.items:
            if it.name in by_name:
                raise ValueError(f"duplicate item name '{it.name}'")
            by_name[it.name] = it
            by_slot.setdefault(it.slot, []).append(it)
            by_rarity.setdefault(it.rarity, []).append(it)

        self.by_name: dict[str, Item] = by_name
        self.by_slot: dict[str, tuple[Item, ...]] = {
            slot: tuple(sorted(group, key=lambda it: it.name))
            for slot, group in by_slot.items()
        }
        self.by_rarity: dict[str, tuple[Item, ...]] = {
            rarity: tuple(group) for rarity, group in by_rarity.items()
        }
        self.rarities: list[str] = sorted(by_rarity)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], data_state: Optional[DataState] = None,
                     generation: int = 0) -> "Catalog":
        items = []
        for name, raw in payload.items():
            item = normalize_item(str(name), raw)
            if item is not None:
                items.append(item)
        return cls(items, data_state, generation)

    def get(self, name: str) -> Optional[Item]:
        return self.by_name.get(name)

    def slot_items(self, slot: str) -> tuple[Item, ...]:
        return self.by_slot.get(slot, ())

    def __len__(self) -> int:
        return len(self.items)


# ---------------------------------------------------------------------------
# Live source
# ---------------------------------------------------------------------------

class HttpItemFetcher:
    """Fetches the full item database as a {name: raw_item} mapping."""

    def __init__(self, url: str = ITEM_DATABASE_URL, user_agent: str = "wynnplanner (local)",
                 timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    def __call__(self) -> dict:
        headers = {"accept": "application/json", "user-agent": self.user_agent}
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            resp = client.get(self.url, headers=headers)
        if resp.status_code != 200:
            raise FetchError(f"DB fetch failed: HTTP {resp.status_code}")
        try:
            payload = orjson.loads(resp.content)
        except orjson.JSONDecodeError as e:
            raise FetchError(f"DB fetch returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise FetchError("DB fetch returned a non-object payload")
        return payload


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class CatalogLoader:
    """Chooses between fresh cache, live fetch and stale fallback."""

    def __init__(self, fetcher: Fetcher, store: SnapshotStore,
                 ttl_seconds: float = CATALOG_TTL_SECONDS):
        self.fetcher = fetcher
        self.store = store
        self.ttl_seconds = ttl_seconds

    def load(self, force: bool = False, generation: int = 0) -> Catalog:
        payload, state = self.load_raw(force)
        catalog = Catalog.from_payload(payload, state, generation)
        logger.info("Catalog loaded: %d items from %s%s", len(catalog), state.source,
                    " (degraded)" if state.degraded else "")
        return catalog

    def load_raw(self, force: bool = False) -> tuple[dict, DataState]:
        if not force:
            cached = self.store.read()
            if cached is not None and cached.age_seconds < self.ttl_seconds:
                return cached.payload, DataState(source=SOURCE_FRESH_CACHE)

        try:
            payload = self.fetcher()
        except Exception as fetch_error:
            cached = self.store.read()
            if cached is None:
                logger.error("Item database fetch failed and no cached copy exists: %s", fetch_error)
                raise DataUnavailable(
                    "Item data unavailable: live fetch failed and no cached copy exists."
                ) from fetch_error
            age_minutes = _round_half_up(cached.age_seconds / 60)
            logger.warning("Item database fetch failed (%s); using %dm old cache",
                           fetch_error, age_minutes)
            return cached.payload, DataState(
                degraded=True,
                warning=f"Live DB fetch failed; using cached data ({age_minutes}m old).",
                source=SOURCE_STALE_FALLBACK,
            )

        try:
            self.store.write(payload)
        except OSError as e:
            logger.warning("Item cache write failed: %s", e)
            return payload, DataState(
                degraded=True,
                warning="Live data loaded but cache write failed.",
                source=SOURCE_LIVE,
            )
        return payload, DataState(source=SOURCE_LIVE)


# ---------------------------------------------------------------------------
# Shared snapshot holder
# ---------------------------------------------------------------------------

class CatalogService:
    """Owns the current Catalog; reloads replace it with one reference swap."""

    def __init__(self, loader: CatalogLoader):
        self.loader = loader
        self._catalog: Optional[Catalog] = None
        self._generation = 0
        self._lock = threading.Lock()
        self._reload_listeners: list[Callable[[], None]] = []

    def add_reload_listener(self, callback: Callable[[], None]) -> None:
        """Called after every successful reload (e.g. to clear cached responses)."""
        self._reload_listeners.append(callback)

    def current(self) -> Catalog:
        """The current snapshot, loading it on first use."""
        catalog = self._catalog
        if catalog is not None:
            return catalog
        with self._lock:
            if self._catalog is None:
                self._catalog = self._build(force=False)
            return self._catalog

    def reload(self) -> Catalog:
        """Force a live load. On DataUnavailable the previous snapshot stays current."""
        with self._lock:
            catalog = self._build(force=True)
            self._catalog = catalog
        for callback in self._reload_listeners:
            callback()
        return catalog

    def _build(self, force: bool) -> Catalog:
        started = time.perf_counter()
        catalog = self.loader.load(force=force, generation=self._generation + 1)
        self._generation = catalog.generation
        logger.debug("Catalog generation %d built in %.2fs",
                     catalog.generation, time.perf_counter() - started)
        return catalog
