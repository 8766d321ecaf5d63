"""Pydantic models for items, filter contexts, engine results and reports.

These are the response-ready schemas; keep field names stable.
"""
import math
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator,
)

from wynnplanner.constants import (
    ALL_SLOTS, DEFAULT_LEVEL, MAX_TOMES, MYTHIC_RARITY, SET_RARITY, SKILL_INDEX,
    SKILLS, ZERO_SKILLS,
)

SkillVector = tuple[int, int, int, int, int]
SlotName = Literal[
    "helmet", "chestplate", "leggings", "boots",
    "necklace", "bracelet", "ring", "weapon", "tome",
]

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def skills_to_dict(vector: SkillVector) -> dict[str, int]:
    return dict(zip(SKILLS, vector))


def coerce_level(value: Any) -> int:
    """Floor to an int and clamp to >= 1; None means the default level."""
    if value is None:
        return DEFAULT_LEVEL
    return max(1, math.floor(float(value)))


def parse_strict_weapon_class(value: Any) -> bool:
    """Lenient flag parsing: bools, 0/1 and common strings; anything else is True."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return True


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class Item(BaseModel):
    """A normalized equippable item. Identity is the name."""
    model_config = ConfigDict(frozen=True)

    name: str
    slot: SlotName
    rarity: str = "unknown"
    level_req: int = Field(default=0, ge=0)
    requirement: SkillVector = ZERO_SKILLS
    display_bonus: SkillVector = ZERO_SKILLS
    class_req: Optional[str] = None
    weapon_type: Optional[str] = None
    identified: bool = False
    set_name: Optional[str] = None

    @computed_field
    @property
    def effective_bonus(self) -> SkillVector:
        """Bonus used for spend/feasibility math; weapons never contribute."""
        if self.slot == "weapon":
            return ZERO_SKILLS
        return self.display_bonus

    @property
    def is_mythic(self) -> bool:
        return self.rarity.lower() == MYTHIC_RARITY

    @property
    def is_set(self) -> bool:
        return self.rarity.lower() == SET_RARITY


class ItemSummary(BaseModel):
    name: str
    slot: str
    rarity: str
    level_req: int

    @classmethod
    def from_item(cls, item: Item) -> "ItemSummary":
        return cls(name=item.name, slot=item.slot, rarity=item.rarity, level_req=item.level_req)


class DataState(BaseModel):
    """How the current catalog snapshot was obtained."""
    model_config = ConfigDict(frozen=True)

    degraded: bool = False
    warning: Optional[str] = None
    source: str = "unknown"  # "cache:fresh" | "live" | "cache:stale-fallback"


# ---------------------------------------------------------------------------
# Filter context
# ---------------------------------------------------------------------------

class FilterContext(BaseModel):
    """Every per-request option that narrows candidates or constrains builds."""
    model_config = ConfigDict(frozen=True)

    level: int = DEFAULT_LEVEL
    character_class: Optional[str] = None
    extra_points: int = Field(default=0, ge=0)
    budget: int  # derived from level + extra_points when not given
    strict_weapon_class: bool = True
    allowed_rarities: Optional[tuple[str, ...]] = None
    min_item_level: Optional[int] = Field(default=None, ge=0)
    no_mythic: bool = False
    no_crafted_best_effort: bool = False
    no_negative_item_bonus: bool = False
    no_negative_net_bonus: bool = False
    must_give_stat: Optional[int] = Field(default=None, ge=0, le=len(SKILLS) - 1)
    min_improvement: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_budget(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("budget") is not None:
            return data
        from wynnplanner.budget import skill_budget_from_level

        level = coerce_level(data.get("level"))
        extra = max(0, math.floor(float(data.get("extra_points") or 0)))
        return {**data, "budget": skill_budget_from_level(level) + extra}

    @field_validator("level", mode="before")
    @classmethod
    def _clamp_level(cls, v: Any) -> int:
        return coerce_level(v)

    @field_validator("character_class", mode="before")
    @classmethod
    def _normalize_class(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip().lower()
        return v or None

    @field_validator("strict_weapon_class", mode="before")
    @classmethod
    def _lenient_strict_flag(cls, v: Any) -> bool:
        return parse_strict_weapon_class(v)

    @field_validator("allowed_rarities", mode="before")
    @classmethod
    def _empty_rarities_mean_any(cls, v: Any) -> Optional[tuple[str, ...]]:
        if not v:
            return None
        return tuple(str(r) for r in v)

    @field_validator("must_give_stat", mode="before")
    @classmethod
    def _skill_name_to_index(cls, v: Any) -> Optional[int]:
        if v is None or v == "":
            return None
        if isinstance(v, str) and not v.isdigit():
            if v.lower() not in SKILL_INDEX:
                raise ValueError(f"unknown skill '{v}'")
            return SKILL_INDEX[v.lower()]
        return int(v)


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------

class AllocationPreset(BaseModel):
    """A named way of spending the skill budget on top of the minimum allocation."""
    model_config = ConfigDict(frozen=True)

    name: str
    alloc: SkillVector
    used: int


class BuildStats(BaseModel):
    final_spend: int
    remaining_sp: int
    equip_order_ok: bool
    allocation_presets: list[AllocationPreset] = Field(default_factory=list)
    net_effective_bonus: SkillVector = ZERO_SKILLS


class BuildScore(BaseModel):
    """Objective values of a complete build (compared lexicographically)."""
    model_config = ConfigDict(frozen=True)

    remaining_sp: int
    negative_tradeoff: int
    final_spend: int
    equip_order_ok: bool = True
    net_effective_bonus: SkillVector = ZERO_SKILLS

    def rank_key(self) -> tuple[int, int, int]:
        """Smaller is better: most remaining SP, least negative tradeoff, least spend."""
        return (-self.remaining_sp, self.negative_tradeoff, self.final_spend)


class SolvedBuild(BaseModel):
    items: list[Item]
    score: BuildScore


class SolveResult(BaseModel):
    """Solver outcome. best=None means no feasible build (not an error)."""
    best: Optional[SolvedBuild] = None
    truncated: bool = False
    nodes_visited: int = 0

    @computed_field
    @property
    def found(self) -> bool:
        return self.best is not None


# ---------------------------------------------------------------------------
# Compatibility requests and reports
# ---------------------------------------------------------------------------

class SortOrder(str, Enum):
    BEST_REMAINING     = "bestRemaining"
    LOWEST_FINAL_SPEND = "lowestFinalSpend"
    LOWEST_LEVEL       = "lowestLevel"
    LEAST_NEGATIVE     = "leastNegative"
    HIGHEST_STR        = "highestSTR"
    HIGHEST_DEX        = "highestDEX"
    HIGHEST_INT        = "highestINT"
    HIGHEST_DEF        = "highestDEF"
    HIGHEST_AGI        = "highestAGI"


class BuildRequest(BaseModel):
    """Current selections shared by compatibility, explain and solve requests."""
    context: FilterContext = Field(default_factory=lambda: FilterContext())
    selected: dict[str, str] = Field(default_factory=dict)  # slot key -> item name
    locks: dict[str, bool] = Field(default_factory=dict)
    tomes: list[str] = Field(default_factory=list, max_length=MAX_TOMES)
    target_slot: Optional[str] = None

    @field_validator("target_slot", mode="before")
    @classmethod
    def _known_slot(cls, v: Any) -> Optional[str]:
        if v is None or str(v).strip() == "":
            return None
        v = str(v).strip()
        if v not in ALL_SLOTS:
            raise ValueError(f"unknown slot '{v}'")
        return v


class CompatibilityRequest(BuildRequest):
    sort_by: SortOrder = SortOrder.BEST_REMAINING
    limit: int = 150
    debug: bool = False
    debug_limit: int = 80

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, v: Any) -> int:
        return max(10, min(500, math.floor(float(v if v is not None else 150))))

    @field_validator("debug_limit", mode="before")
    @classmethod
    def _clamp_debug_limit(cls, v: Any) -> int:
        return max(0, min(200, math.floor(float(v if v is not None else 80))))


class CandidateResult(BaseModel):
    name: str
    rarity: str
    level_req: int
    requirement: SkillVector
    bonus: SkillVector  # display bonus
    final_spend: int
    remaining_after: int
    delta_remaining: int
    negative_tradeoff: int


class BaselineStats(BaseModel):
    final_spend: int
    remaining_sp: int
    equip_order_ok: bool


class AllocationPreview(BaseModel):
    name: str
    used: int
    remaining: int
    alloc: dict[str, int]


class SetSynergy(BaseModel):
    count: int = 0
    groups: dict[str, list[str]] = Field(default_factory=dict)


class ExcludedSample(BaseModel):
    name: str
    reason: str


class DebugExclusions(BaseModel):
    counts: dict[str, int] = Field(default_factory=dict)
    samples: list[ExcludedSample] = Field(default_factory=list)


class CompatibilityReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: int
    character_class: Optional[str]
    budget_base: int
    extra_points: int
    budget: int
    baseline: BaselineStats
    allocation_preview: list[AllocationPreview]
    set_synergy: SetSynergy
    results: dict[str, list[CandidateResult]]
    debug_excluded: Optional[DebugExclusions] = None
    notes: list[str] = Field(default_factory=list)
    data_state: DataState = Field(default_factory=DataState)


class Explanation(BaseModel):
    item: str
    found: bool = True
    passes: bool = False
    reason: Optional[str] = None


class SolveReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    found: bool
    truncated: bool
    nodes_visited: int
    score: Optional[BuildScore] = None
    items: list[ItemSummary] = Field(default_factory=list)
    data_state: DataState = Field(default_factory=DataState)


class HealthReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    item_count: int
    rarities: list[str]
    data_state: DataState
