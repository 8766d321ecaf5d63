"""Build solver: shortlist pools per slot, then exhaustive backtracking."""
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from wynnplanner.budget import (
    add_vectors, equip_order_feasible, max_vectors, negative_sum,
    spend_for,
)
from wynnplanner.checker import filter_candidates
from wynnplanner.constants import (
    DEFAULT_NODE_BUDGET, DEFAULT_POOL_CAP, DEFAULT_RING_POOL_CAP, GEAR_SLOT_KEYS,
    PER_SKILL_CAP, RING_KEYS, SINGLE_SLOT_KEYS, ZERO_SKILLS,
)
from wynnplanner.data import Catalog
from wynnplanner.models import (
    BuildScore, FilterContext, Item, SkillVector, SolvedBuild, SolveResult,
)

logger = logging.getLogger(__name__)

RING_POOL = "ring"


def shortlist_key(item: Item, ctx: FilterContext) -> tuple[int, int, str]:
    """Candidates that cost the least net skill points sort first.

    With no_negative_net_bonus, items carrying negative bonuses go last.
    """
    bonus = item.effective_bonus
    penalty = negative_sum(bonus) if ctx.no_negative_net_bonus else 0
    return (penalty, sum(item.requirement) - sum(bonus), item.name)


def fixed_items(locked: Mapping[str, Item], tomes: Iterable[Item] = ()) -> list[Item]:
    """Locked gear in slot-key order followed by distinct tomes."""
    items: list[Item] = []
    names: set[str] = set()
    for key in GEAR_SLOT_KEYS:
        it = locked.get(key)
        if it is not None and it.name not in names:
            items.append(it)
            names.add(it.name)
    for tome in tomes:
        if tome.slot == "tome" and tome.name not in names:
            items.append(tome)
            names.add(tome.name)
    return items


@dataclass
class SearchState:
    """Mutable state threaded through one backtracking run."""
    items: list[Item]
    used_names: set[str]
    bonus: SkillVector = ZERO_SKILLS
    max_req: SkillVector = ZERO_SKILLS
    negative_tradeoff: int = 0
    nodes: int = 0
    truncated: bool = False
    best: Optional[SolvedBuild] = None
    _undo: list[tuple[SkillVector, SkillVector, int]] = field(default_factory=list)

    @classmethod
    def start(cls, fixed: Sequence[Item]) -> "SearchState":
        state = cls(items=[], used_names=set())
        for it in fixed:
            state.push(it)
        state._undo.clear()
        return state

    def push(self, item: Item) -> None:
        self._undo.append((self.bonus, self.max_req, self.negative_tradeoff))
        self.items.append(item)
        self.used_names.add(item.name)
        self.bonus = add_vectors(self.bonus, item.effective_bonus)
        self.max_req = max_vectors(self.max_req, item.requirement)
        self.negative_tradeoff += negative_sum(item.display_bonus)

    def pop(self) -> None:
        item = self.items.pop()
        self.used_names.discard(item.name)
        self.bonus, self.max_req, self.negative_tradeoff = self._undo.pop()


class BuildSolver:
    """Finds the build that leaves the most skill points unspent."""

    def __init__(self, pool_cap: int = DEFAULT_POOL_CAP,
                 ring_pool_cap: int = DEFAULT_RING_POOL_CAP,
                 per_skill_cap: int = PER_SKILL_CAP,
                 node_budget: int = DEFAULT_NODE_BUDGET):
        self.pool_cap = pool_cap
        self.ring_pool_cap = ring_pool_cap
        self.per_skill_cap = per_skill_cap
        self.node_budget = node_budget

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_pools(self, by_slot: Mapping[str, Sequence[Item]], ctx: FilterContext,
                    locked: Mapping[str, Item],
                    tomes: Iterable[Item] = ()) -> dict[str, list[Item]]:
        """Ranked, capped candidates for every slot that still needs filling.

        Keys are single slot keys plus "ring" when at least one ring is free.
        """
        used = {it.name for it in fixed_items(locked, tomes)}
        pools: dict[str, list[Item]] = {}
        for key in SINGLE_SLOT_KEYS:
            if locked.get(key) is not None:
                continue
            pools[key] = self._shortlist(by_slot.get(GEAR_SLOT_KEYS[key], ()), ctx, used, self.pool_cap)
        if any(locked.get(key) is None for key in RING_KEYS):
            pools[RING_POOL] = self._shortlist(by_slot.get("ring", ()), ctx, used, self.ring_pool_cap)
        return pools

    def solve(self, ctx: FilterContext, locked: Mapping[str, Item],
              pools: Mapping[str, Sequence[Item]], node_budget: Optional[int] = None,
              tomes: Iterable[Item] = ()) -> SolveResult:
        """Best complete build over the given pools.

        Every unlocked slot is filled. Rings take two distinct picks when
        neither ring is locked and one pick when exactly one is.
        """
        budget_nodes = self.node_budget if node_budget is None else node_budget
        fixed = fixed_items(locked, tomes)
        rings_needed = sum(1 for key in RING_KEYS if locked.get(key) is None)

        # smallest pool first; ties keep slot order
        steps: list[tuple[str, list[Item], int]] = []
        for key in SINGLE_SLOT_KEYS:
            if locked.get(key) is None:
                steps.append((key, list(pools.get(key, ())), 1))
        if rings_needed:
            steps.append((RING_POOL, list(pools.get(RING_POOL, ())), rings_needed))
        steps.sort(key=lambda s: len(s[1]))

        started = time.perf_counter()
        state = SearchState.start(fixed)
        self._backtrack_solve(ctx, steps, state, budget_nodes)
        logger.debug("Solver visited %d nodes in %.3fs (truncated=%s, found=%s)",
                     state.nodes, time.perf_counter() - started,
                     state.truncated, state.best is not None)
        return SolveResult(best=state.best, truncated=state.truncated, nodes_visited=state.nodes)

    def solve_build(self, catalog: Catalog, ctx: FilterContext,
                    locked: Mapping[str, Item], tomes: Iterable[Item] = (),
                    node_budget: Optional[int] = None) -> SolveResult:
        tomes = list(tomes)
        pools = self.build_pools(catalog.by_slot, ctx, locked, tomes)
        return self.solve(ctx, locked, pools, node_budget=node_budget, tomes=tomes)

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    @staticmethod
    def _shortlist(candidates: Iterable[Item], ctx: FilterContext,
                   used: set[str], cap: int) -> list[Item]:
        eligible = [it for it in filter_candidates(candidates, ctx) if it.name not in used]
        eligible.sort(key=lambda it: shortlist_key(it, ctx))
        return eligible[:cap]

    # ------------------------------------------------------------------
    # Solver
    # ------------------------------------------------------------------

    @staticmethod
    def _best_bonus_per_step(steps: Sequence[tuple[str, list[Item], int]]) -> list[SkillVector]:
        """Per skill, the largest positive bonus each step could still add."""
        best: list[SkillVector] = []
        for _, pool, picks in steps:
            per_skill: list[int] = []
            for s in range(5):
                values = sorted((max(0, it.effective_bonus[s]) for it in pool), reverse=True)
                per_skill.append(sum(values[:picks]))
            best.append(tuple(per_skill))  # type: ignore[arg-type]
        return best

    def _backtrack_solve(self, ctx: FilterContext, steps: list[tuple[str, list[Item], int]],
                         state: SearchState, node_budget: int) -> None:
        budget = ctx.budget
        per_step = self._best_bonus_per_step(steps)
        # remaining_max[i]: best positive bonus still obtainable from steps i..end
        remaining_max: list[SkillVector] = [ZERO_SKILLS] * (len(steps) + 1)
        for i in range(len(steps) - 1, -1, -1):
            remaining_max[i] = add_vectors(remaining_max[i + 1], per_step[i])
        best_key: list[Optional[tuple[int, int, int]]] = [None]

        def prune(step_idx: int) -> bool:
            optimistic = add_vectors(state.bonus, remaining_max[step_idx])
            if spend_for(state.max_req, optimistic) > budget:
                return True  # lower-bound prune
            if ctx.no_negative_net_bonus and any(v < 0 for v in optimistic):
                return True  # net bonus can never recover
            return False

        def accept() -> None:
            final_spend = spend_for(state.max_req, state.bonus)
            remaining = budget - final_spend
            if remaining < 0:
                return
            score = BuildScore(
                remaining_sp=remaining,
                negative_tradeoff=state.negative_tradeoff,
                final_spend=final_spend,
                net_effective_bonus=state.bonus,
            )
            key = score.rank_key()
            if best_key[0] is not None and key >= best_key[0]:
                return
            if not equip_order_feasible(state.items, budget, self.per_skill_cap):
                return
            best_key[0] = key
            state.best = SolvedBuild(items=list(state.items), score=score)

        def backtrack(step_idx: int) -> None:
            if state.truncated:
                return
            state.nodes += 1
            if state.nodes > node_budget:
                state.truncated = True
                return
            if prune(step_idx):
                return
            if step_idx == len(steps):
                accept()
                return

            _, pool, picks = steps[step_idx]
            for a, first in enumerate(pool):
                if state.truncated:
                    return
                if first.name in state.used_names:
                    continue
                state.push(first)
                if picks == 1:
                    backtrack(step_idx + 1)
                else:
                    for second in pool[a + 1:]:
                        if state.truncated:
                            break
                        if second.name in state.used_names:
                            continue
                        state.push(second)
                        backtrack(step_idx + 1)
                        state.pop()
                state.pop()

        backtrack(0)


def solve_build(catalog: Catalog, ctx: FilterContext, locked: Mapping[str, Item],
                tomes: Iterable[Item] = (), solver: Optional[BuildSolver] = None) -> SolveResult:
    """Convenience wrapper using default solver limits."""
    return (solver or BuildSolver()).solve_build(catalog, ctx, locked, tomes)
