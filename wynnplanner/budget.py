"""Skill-point budget algebra and equip-order feasibility.

Every function here is pure. Items only contribute their requirement and
effective bonus (weapon bonuses are already zeroed on the Item model), so the
same math works for any mix of gear slots and tomes.
"""
from collections.abc import Iterable, Sequence

from wynnplanner.constants import (
    MAX_EQUIP_ORDER_ITEMS, PER_SKILL_CAP, SKILL_ABBREVIATIONS,
    SKILL_POINT_LEVEL_CAP, SKILL_POINTS_PER_LEVEL, ZERO_SKILLS,
)
from wynnplanner.models import AllocationPreset, BuildStats, Item, SkillVector


# ---------------------------------------------------------------------------
# Vector algebra (fixed arity of 5)
# ---------------------------------------------------------------------------

def add_vectors(a: SkillVector, b: SkillVector) -> SkillVector:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2], a[3] + b[3], a[4] + b[4])


def max_vectors(a: SkillVector, b: SkillVector) -> SkillVector:
    return (max(a[0], b[0]), max(a[1], b[1]), max(a[2], b[2]),
            max(a[3], b[3]), max(a[4], b[4]))


def negative_sum(v: SkillVector) -> int:
    """Sum of the magnitudes of the negative components."""
    return sum(-x for x in v if x < 0)


def positive_part(v: SkillVector) -> SkillVector:
    return (max(0, v[0]), max(0, v[1]), max(0, v[2]), max(0, v[3]), max(0, v[4]))


def sum_vectors(vectors: Iterable[SkillVector]) -> SkillVector:
    total = ZERO_SKILLS
    for v in vectors:
        total = add_vectors(total, v)
    return total


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

def skill_budget_from_level(level: int) -> int:
    """2 points per level after the first; saturates at 200 from level 101."""
    capped = min(max(1, int(level)), SKILL_POINT_LEVEL_CAP)
    return SKILL_POINTS_PER_LEVEL * (capped - 1)


def _requirement_and_bonus(items: Iterable[Item]) -> tuple[SkillVector, SkillVector]:
    max_req = ZERO_SKILLS
    total_bonus = ZERO_SKILLS
    for it in items:
        max_req = max_vectors(max_req, it.requirement)
        total_bonus = add_vectors(total_bonus, it.effective_bonus)
    return max_req, total_bonus


def spend_for(max_req: SkillVector, total_bonus: SkillVector) -> int:
    return sum(max(0, r - b) for r, b in zip(max_req, total_bonus))


def minimum_spend(items: Iterable[Item]) -> int:
    """Least allocation meeting every requirement once all bonuses are worn."""
    return spend_for(*_requirement_and_bonus(items))


def minimum_allocation(items: Iterable[Item],
                       per_skill_cap: int = PER_SKILL_CAP) -> SkillVector:
    """The allocation vector that achieves minimum_spend, capped per skill."""
    max_req, total_bonus = _requirement_and_bonus(items)
    return tuple(  # type: ignore[return-value]
        min(per_skill_cap, max(0, r - b)) for r, b in zip(max_req, total_bonus)
    )


# ---------------------------------------------------------------------------
# Equip order
# ---------------------------------------------------------------------------

def can_equip_now(requirement: SkillVector, current_bonus: SkillVector,
                  budget: int, per_skill_cap: int = PER_SKILL_CAP) -> int | None:
    """Allocation needed to wear an item given the bonuses already worn.

    Returns None when a single skill needs more than per_skill_cap or the
    step alone exceeds the budget.
    """
    needed = 0
    for r, b in zip(requirement, current_bonus):
        need = r - b
        if need <= 0:
            continue
        if need > per_skill_cap:
            return None
        needed += need
        if needed > budget:
            return None
    return needed


def _cannot_possibly_fit(items: Sequence[Item], budget: int, per_skill_cap: int) -> bool:
    """Necessary conditions checked before the subset search.

    Each item is charged its cheapest possible step: every other item's
    positive bonus already worn.
    """
    positive = [positive_part(it.effective_bonus) for it in items]
    all_positive = sum_vectors(positive)
    cheapest_total = 0
    for it, own in zip(items, positive):
        for s in range(5):
            need = it.requirement[s] - (all_positive[s] - own[s])
            if need > per_skill_cap:
                return True
            if need > 0:
                cheapest_total += need
    return cheapest_total > budget


def equip_order_feasible(items: Sequence[Item], budget: int,
                         per_skill_cap: int = PER_SKILL_CAP) -> bool:
    """True if some equip order keeps the cumulative step allocation within budget.

    Bitmask DP over an explicit item index: bit i of a mask is indexed[i].
    cost[mask] is the least cumulative allocation that reaches "everything
    in mask is worn"; wearing item i on top of mask costs
    can_equip_now(req_i, bonus(mask)).
    """
    indexed = list(items)
    n = len(indexed)
    if n == 0:
        return True
    if n > MAX_EQUIP_ORDER_ITEMS:
        raise ValueError(f"equip-order search supports at most {MAX_EQUIP_ORDER_ITEMS} items, got {n}")
    if budget < 0 or _cannot_possibly_fit(indexed, budget, per_skill_cap):
        return False

    reqs = [it.requirement for it in indexed]
    bonuses = [it.effective_bonus for it in indexed]

    size = 1 << n
    bonus_sum: list[SkillVector] = [ZERO_SKILLS] * size
    for mask in range(1, size):
        lsb = mask & -mask
        bonus_sum[mask] = add_vectors(bonus_sum[mask ^ lsb], bonuses[lsb.bit_length() - 1])

    unreachable = budget + 1
    cost = [unreachable] * size
    cost[0] = 0
    for mask in range(size):
        spent = cost[mask]
        if spent > budget:
            continue
        cur_bonus = bonus_sum[mask]
        for i in range(n):
            bit = 1 << i
            if mask & bit:
                continue
            step = can_equip_now(reqs[i], cur_bonus, budget - spent, per_skill_cap)
            if step is None:
                continue
            nxt = mask | bit
            if spent + step < cost[nxt]:
                cost[nxt] = spent + step

    return cost[size - 1] <= budget


# ---------------------------------------------------------------------------
# Allocation presets
# ---------------------------------------------------------------------------

def _round_robin(alloc: list[int], remaining: int, per_skill_cap: int) -> int:
    while remaining > 0:
        progressed = False
        for i in range(5):
            if remaining <= 0:
                break
            if alloc[i] < per_skill_cap:
                alloc[i] += 1
                remaining -= 1
                progressed = True
        if not progressed:
            break
    return remaining


def _preset(name: str, alloc: Sequence[int]) -> AllocationPreset:
    return AllocationPreset(name=name, alloc=tuple(alloc), used=sum(alloc))


def allocation_presets(items: Sequence[Item], budget: int,
                       per_skill_cap: int = PER_SKILL_CAP) -> list[AllocationPreset]:
    """Min spend, Balanced, and one Prioritize preset per skill."""
    base = minimum_allocation(items, per_skill_cap)
    remaining = max(0, budget - sum(base))

    balanced = list(base)
    _round_robin(balanced, remaining, per_skill_cap)

    presets = [_preset("Min spend", base), _preset("Balanced", balanced)]
    for idx, abbrev in enumerate(SKILL_ABBREVIATIONS):
        alloc = list(base)
        rem = remaining
        fill = min(rem, max(0, per_skill_cap - alloc[idx]))
        alloc[idx] += fill
        rem -= fill
        _round_robin(alloc, rem, per_skill_cap)
        presets.append(_preset(f"Prioritize {abbrev}", alloc))
    return presets


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def build_stats(items: Sequence[Item], budget: int,
                per_skill_cap: int = PER_SKILL_CAP) -> BuildStats:
    items = list(items)
    final_spend = minimum_spend(items)
    remaining = budget - final_spend
    feasible = remaining >= 0 and equip_order_feasible(items, budget, per_skill_cap)
    return BuildStats(
        final_spend=final_spend,
        remaining_sp=remaining,
        equip_order_ok=feasible,
        allocation_presets=allocation_presets(items, budget, per_skill_cap) if remaining >= 0 else [],
        net_effective_bonus=sum_vectors(it.effective_bonus for it in items),
    )
