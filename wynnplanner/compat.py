"""
Compatibility evaluation: which items fit the current selection, and why not.

The current selection is split into a fixed part (locked slots, non-target
slots and tomes) and a baseline (fixed plus the replaceable items of the
target slot). Candidates are scored as fixed + candidate against the baseline.
"""
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from wynnplanner.budget import (
    build_stats, equip_order_feasible, minimum_spend, negative_sum, skill_budget_from_level,
    sum_vectors,
)
from wynnplanner.checker import RejectReason, check_item, rejection_counts
from wynnplanner.constants import GEAR_SLOT_KEYS, GEAR_SLOTS, PER_SKILL_CAP
from wynnplanner.data import Catalog
from wynnplanner.models import (
    AllocationPreview, BaselineStats, BuildRequest, CandidateResult,
    CompatibilityReport, CompatibilityRequest, DebugExclusions, ExcludedSample,
    Explanation, FilterContext, Item, SetSynergy, SortOrder, skills_to_dict,
)

WEAPON_BONUS_NOTE = "Weapon skill bonuses are ignored for build validity (weapon requirements still apply)."
UNKNOWN_SET_NAME = "(unknown set name)"

_STAT_ORDERS = {
    SortOrder.HIGHEST_STR: 0,
    SortOrder.HIGHEST_DEX: 1,
    SortOrder.HIGHEST_INT: 2,
    SortOrder.HIGHEST_DEF: 3,
    SortOrder.HIGHEST_AGI: 4,
}


class Selection(NamedTuple):
    """Resolved selection for one request."""
    by_key: dict[str, Item]    # slot key -> selected item
    tomes: list[Item]
    fixed: list[Item]          # never replaced by a candidate
    baseline: list[Item]       # current build the candidates are compared with
    used_names: set[str]


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def resolve_tomes(catalog: Catalog, names: Iterable[str],
                  exclude: Iterable[str] = ()) -> list[Item]:
    """Tome-slot items by name, de-duplicated; unknown names are ignored."""
    seen = set(exclude)
    tomes = []
    for name in names:
        it = catalog.get(str(name).strip())
        if it is not None and it.slot == "tome" and it.name not in seen:
            tomes.append(it)
            seen.add(it.name)
    return tomes


def resolve_selection(catalog: Catalog, request: BuildRequest) -> Selection:
    by_key: dict[str, Item] = {}
    used: set[str] = set()
    for key in GEAR_SLOT_KEYS:
        name = str(request.selected.get(key) or "").strip()
        it = catalog.get(name) if name else None
        if it is None:
            continue
        by_key[key] = it
        used.add(it.name)

    tomes = resolve_tomes(catalog, request.tomes, exclude=used)
    used.update(it.name for it in tomes)

    target = request.target_slot
    fixed: list[Item] = []
    replaceable: list[Item] = []
    for key, slot in GEAR_SLOT_KEYS.items():
        it = by_key.get(key)
        if it is None:
            continue
        if request.locks.get(key) or slot != target:
            fixed.append(it)
        else:
            replaceable.append(it)
    fixed.extend(tomes)

    return Selection(by_key, tomes, fixed, fixed + replaceable, used)


def locked_selection(catalog: Catalog, request: BuildRequest) -> dict[str, Item]:
    """Selected items in locked slot keys (what the solver must keep)."""
    locked = {}
    for key in GEAR_SLOT_KEYS:
        if not request.locks.get(key):
            continue
        name = str(request.selected.get(key) or "").strip()
        it = catalog.get(name) if name else None
        if it is not None:
            locked[key] = it
    return locked


def set_synergy(items: Iterable[Item]) -> SetSynergy:
    """Set-rarity items grouped by set name (best effort)."""
    groups: dict[str, list[str]] = {}
    count = 0
    for it in items:
        if not it.is_set:
            continue
        count += 1
        groups.setdefault(it.set_name or UNKNOWN_SET_NAME, []).append(it.name)
    return SetSynergy(count=count, groups=groups)


# ---------------------------------------------------------------------------
# Build-level checks
# ---------------------------------------------------------------------------

def build_reason(items: Sequence[Item], ctx: FilterContext, baseline_spend: int,
                 per_skill_cap: int = PER_SKILL_CAP) -> tuple[RejectReason, int]:
    """First build-level failure for a complete item set, plus its final spend."""
    final_spend = minimum_spend(items)
    if ctx.no_negative_net_bonus:
        net = sum_vectors(it.effective_bonus for it in items)
        if any(v < 0 for v in net):
            return RejectReason.NEGATIVE_NET_BONUS, final_spend
    if final_spend > ctx.budget:
        return RejectReason.FINAL_BUDGET, final_spend
    if not equip_order_feasible(items, ctx.budget, per_skill_cap):
        return RejectReason.EQUIP_ORDER, final_spend
    if ctx.min_improvement is not None and baseline_spend - final_spend < ctx.min_improvement:
        return RejectReason.IMPROVEMENT_THRESHOLD, final_spend
    return RejectReason.NONE, final_spend


def sort_candidates(results: list[CandidateResult], order: SortOrder) -> list[CandidateResult]:
    if order in _STAT_ORDERS:
        idx = _STAT_ORDERS[order]
        key = lambda r: (-r.bonus[idx], -r.remaining_after, r.name)
    elif order is SortOrder.LOWEST_FINAL_SPEND:
        key = lambda r: (r.final_spend, -r.remaining_after, r.name)
    elif order is SortOrder.LOWEST_LEVEL:
        key = lambda r: (r.level_req, -r.remaining_after, r.name)
    elif order is SortOrder.LEAST_NEGATIVE:
        key = lambda r: (r.negative_tradeoff, -r.remaining_after, r.name)
    else:
        key = lambda r: (-r.remaining_after, r.final_spend, r.name)
    return sorted(results, key=key)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate_compatible(catalog: Catalog, request: CompatibilityRequest,
                        per_skill_cap: int = PER_SKILL_CAP) -> CompatibilityReport:
    """Compatible candidates per output slot, sorted then truncated to request.limit."""
    ctx = request.context
    budget = ctx.budget
    selection = resolve_selection(catalog, request)
    base = build_stats(selection.baseline, budget, per_skill_cap)

    output_slots: Sequence[str] = (request.target_slot,) if request.target_slot else GEAR_SLOTS
    results: dict[str, list[CandidateResult]] = {}
    counts: Counter[str] = Counter()
    samples: list[ExcludedSample] = []

    for slot in output_slots:
        pool = [it for it in catalog.slot_items(slot) if it.name not in selection.used_names]
        if request.debug:
            counts.update(rejection_counts(pool, ctx))

        compatible = []
        for cand in pool:
            if check_item(cand, ctx) is not RejectReason.NONE:
                continue
            reason, final_spend = build_reason(
                selection.fixed + [cand], ctx, base.final_spend, per_skill_cap)
            if reason is not RejectReason.NONE:
                if request.debug:
                    counts[reason.value] += 1
                    if len(samples) < request.debug_limit:
                        samples.append(ExcludedSample(name=cand.name, reason=reason.value))
                continue
            compatible.append(CandidateResult(
                name=cand.name,
                rarity=cand.rarity,
                level_req=cand.level_req,
                requirement=cand.requirement,
                bonus=cand.display_bonus,
                final_spend=final_spend,
                remaining_after=budget - final_spend,
                delta_remaining=base.final_spend - final_spend,
                negative_tradeoff=negative_sum(cand.display_bonus),
            ))
        results[slot] = sort_candidates(compatible, request.sort_by)[:request.limit]

    notes = [WEAPON_BONUS_NOTE]
    if catalog.data_state.degraded and catalog.data_state.warning:
        notes.append(catalog.data_state.warning)

    return CompatibilityReport(
        level=ctx.level,
        character_class=ctx.character_class,
        budget_base=skill_budget_from_level(ctx.level),
        extra_points=ctx.extra_points,
        budget=budget,
        baseline=BaselineStats(
            final_spend=base.final_spend,
            remaining_sp=base.remaining_sp,
            equip_order_ok=base.equip_order_ok,
        ),
        allocation_preview=[
            AllocationPreview(name=p.name, used=p.used, remaining=budget - p.used,
                              alloc=skills_to_dict(p.alloc))
            for p in base.allocation_presets
        ],
        set_synergy=set_synergy(selection.baseline),
        results=results,
        debug_excluded=DebugExclusions(counts=dict(counts), samples=samples) if request.debug else None,
        notes=notes,
        data_state=catalog.data_state,
    )


def explain_item(catalog: Catalog, request: BuildRequest, item_name: str,
                 per_skill_cap: int = PER_SKILL_CAP) -> Explanation:
    """Why item_name is (or is not) compatible with the fixed part of the selection."""
    name = str(item_name).strip()
    cand = catalog.get(name)
    if cand is None:
        return Explanation(item=name, found=False, passes=False, reason="item not found")

    ctx = request.context
    reason = check_item(cand, ctx)
    if reason is RejectReason.NONE:
        fixed = [it for it in resolve_selection(catalog, request).fixed if it.name != cand.name]
        reason, _ = build_reason(fixed + [cand], ctx, minimum_spend(fixed), per_skill_cap)

    passes = reason is RejectReason.NONE
    return Explanation(item=cand.name, passes=passes, reason=None if passes else reason.value)
