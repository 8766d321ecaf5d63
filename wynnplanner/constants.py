"""Game constants. No mutable state."""

# Skill order used by every skill vector
SKILLS: tuple[str, ...] = ("strength", "dexterity", "intelligence", "defence", "agility")
SKILL_INDEX: dict[str, int] = {name: idx for idx, name in enumerate(SKILLS)}
SKILL_ABBREVIATIONS: tuple[str, ...] = ("STR", "DEX", "INT", "DEF", "AGI")

ZERO_SKILLS: tuple[int, int, int, int, int] = (0, 0, 0, 0, 0)

# Equipment slots an item can occupy
GEAR_SLOTS: tuple[str, ...] = (
    "helmet", "chestplate", "leggings", "boots",
    "necklace", "bracelet", "ring", "weapon",
)
ALL_SLOTS: tuple[str, ...] = GEAR_SLOTS + ("tome",)

# Selection keys -> slot (two ring keys share the "ring" slot)
GEAR_SLOT_KEYS: dict[str, str] = {
    "helmet":     "helmet",
    "chestplate": "chestplate",
    "leggings":   "leggings",
    "boots":      "boots",
    "necklace":   "necklace",
    "bracelet":   "bracelet",
    "ring1":      "ring",
    "ring2":      "ring",
    "weapon":     "weapon",
}
RING_KEYS: tuple[str, str] = ("ring1", "ring2")
SINGLE_SLOT_KEYS: tuple[str, ...] = tuple(k for k, s in GEAR_SLOT_KEYS.items() if s != "ring")

CLASS_WEAPON_TYPES: dict[str, str] = {
    "warrior":  "spear",
    "mage":     "wand",
    "archer":   "bow",
    "assassin": "dagger",
    "shaman":   "relik",
}

# Rarities are open-ended; only these two get special handling
MYTHIC_RARITY = "mythic"
SET_RARITY = "set"

# Skill points: 2 per level after the first, saturating at level 101
SKILL_POINTS_PER_LEVEL = 2
SKILL_POINT_LEVEL_CAP = 101
PER_SKILL_CAP = 100

DEFAULT_LEVEL = 106
DEFAULT_POOL_CAP = 80
DEFAULT_RING_POOL_CAP = 140
DEFAULT_NODE_BUDGET = 250_000
DEFAULT_RESPONSE_CACHE_SIZE = 250

# Tome slots a character can fill; keeps builds inside the equip-order DP limit
MAX_TOMES = 8

# Equip-order DP allocates 2**n states
MAX_EQUIP_ORDER_ITEMS = 20

ITEM_DATABASE_URL = "https://api.wynncraft.com/v3/item/database?fullResult="
CATALOG_TTL_SECONDS = 55 * 60


def weapon_type_for_class(character_class: str | None) -> str | None:
    """Canonical weapon type for a class, or None for unknown/unset classes."""
    if not character_class:
        return None
    return CLASS_WEAPON_TYPES.get(character_class.lower())
