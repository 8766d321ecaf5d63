"""Candidate eligibility checks: pure validation, independent of other picks."""
from collections import Counter
from collections.abc import Iterable
from enum import Enum, unique

from wynnplanner.constants import weapon_type_for_class
from wynnplanner.models import FilterContext, Item


@unique
class RejectReason(str, Enum):
    NONE                   = ""
    LEVEL                  = "fails level"
    MIN_LEVEL              = "fails min level"
    CLASS                  = "fails class"
    WEAPON_CLASS           = "fails weapon class"
    RARITY                 = "fails rarity"
    MYTHIC                 = "excluded mythic"
    CRAFTED                = "excluded crafted/unidentified"
    NEGATIVE_ITEM_BONUS    = "excluded negative skill bonus"
    MUST_GIVE_STAT         = "fails required stat bonus"
    # Build-level reasons (need the rest of the build)
    NEGATIVE_NET_BONUS     = "excluded negative net bonuses"
    FINAL_BUDGET           = "fails final budget"
    EQUIP_ORDER            = "fails equip order"
    IMPROVEMENT_THRESHOLD  = "fails improvement threshold"


def check_item(item: Item, ctx: FilterContext) -> RejectReason:
    """Return the first RejectReason for an item, or NONE if it is eligible.

    Checks run cheapest/most-discriminating first so the reason is stable
    for debug output.
    """
    if item.level_req > ctx.level:
        return RejectReason.LEVEL
    if ctx.min_item_level is not None and item.level_req < ctx.min_item_level:
        return RejectReason.MIN_LEVEL

    if ctx.character_class:
        if item.class_req and item.class_req != ctx.character_class:
            return RejectReason.CLASS
        if item.slot == "weapon" and ctx.strict_weapon_class:
            wanted = weapon_type_for_class(ctx.character_class)
            if wanted and item.weapon_type and item.weapon_type != wanted:
                return RejectReason.WEAPON_CLASS

    if ctx.allowed_rarities and item.rarity not in ctx.allowed_rarities:
        return RejectReason.RARITY
    if ctx.no_mythic and item.is_mythic:
        return RejectReason.MYTHIC

    # best effort: identified items are never crafted
    if ctx.no_crafted_best_effort and not item.identified:
        return RejectReason.CRAFTED

    if ctx.no_negative_item_bonus and any(v < 0 for v in item.display_bonus):
        return RejectReason.NEGATIVE_ITEM_BONUS

    if ctx.must_give_stat is not None:
        idx = ctx.must_give_stat
        bonus = item.display_bonus if item.slot == "weapon" else item.effective_bonus
        if bonus[idx] <= 0:
            return RejectReason.MUST_GIVE_STAT

    return RejectReason.NONE


def passes_filters(item: Item, ctx: FilterContext) -> bool:
    return check_item(item, ctx) is RejectReason.NONE


def filter_candidates(pool: Iterable[Item], ctx: FilterContext) -> list[Item]:
    """Eligible items from pool, in pool order."""
    return [it for it in pool if check_item(it, ctx) is RejectReason.NONE]


def rejection_counts(pool: Iterable[Item], ctx: FilterContext) -> Counter[str]:
    """How many items each reason rejected (debug diagnostics)."""
    counts: Counter[str] = Counter()
    for it in pool:
        reason = check_item(it, ctx)
        if reason is not RejectReason.NONE:
            counts[reason.value] += 1
    return counts
