"""Tests for compatibility evaluation and explanations (compat.py)."""
from wynnplanner import (
    Catalog, CompatibilityRequest, FilterContext, SortOrder, evaluate_compatible, explain_item,
)
from wynnplanner.compat import (
    WEAPON_BONUS_NOTE, resolve_selection, resolve_tomes, set_synergy, sort_candidates,
)
from wynnplanner.models import BuildRequest, CandidateResult


def _request(**kwargs) -> CompatibilityRequest:
    return CompatibilityRequest(**kwargs)


def _names(report, slot: str) -> list[str]:
    return [r.name for r in report.results[slot]]


class TestResolveSelection:
    def test_target_slot_items_are_replaceable(self, sample_catalog: Catalog) -> None:
        req = _request(selected={"helmet": "Cap", "chestplate": "Tunic"}, target_slot="helmet")
        sel = resolve_selection(sample_catalog, req)
        assert [it.name for it in sel.fixed] == ["Tunic"]
        assert [it.name for it in sel.baseline] == ["Tunic", "Cap"]
        assert sel.used_names == {"Cap", "Tunic"}

    def test_locked_target_stays_fixed(self, sample_catalog: Catalog) -> None:
        req = _request(selected={"helmet": "Cap"}, locks={"helmet": True}, target_slot="helmet")
        sel = resolve_selection(sample_catalog, req)
        assert [it.name for it in sel.fixed] == ["Cap"]
        assert sel.baseline == sel.fixed

    def test_unknown_names_are_ignored(self, sample_catalog: Catalog) -> None:
        sel = resolve_selection(sample_catalog, _request(selected={"helmet": "Missing"}))
        assert sel.by_key == {}

    def test_tomes_are_deduplicated_and_slot_checked(self, sample_catalog: Catalog) -> None:
        tomes = resolve_tomes(sample_catalog, ["Tome of Might", "Tome of Might", "Cap", "Nope"])
        assert [it.name for it in tomes] == ["Tome of Might"]


class TestEvaluateCompatible:
    def test_target_slot_results(self, sample_catalog: Catalog) -> None:
        report = evaluate_compatible(sample_catalog, _request(target_slot="helmet"))
        assert list(report.results) == ["helmet"]
        assert _names(report, "helmet") == ["Cap", "Iron Helm"]
        iron = report.results["helmet"][1]
        assert iron.final_spend == 40
        assert iron.remaining_after == 160
        assert iron.delta_remaining == -40

    def test_all_slots_without_target(self, sample_catalog: Catalog) -> None:
        report = evaluate_compatible(sample_catalog, _request())
        assert list(report.results) == [
            "helmet", "chestplate", "leggings", "boots",
            "necklace", "bracelet", "ring", "weapon",
        ]
        assert "Tome of Might" not in [r.name for rs in report.results.values() for r in rs]

    def test_budget_breakdown(self, sample_catalog: Catalog) -> None:
        ctx = FilterContext(level=50, extra_points=5, character_class="Warrior")
        report = evaluate_compatible(sample_catalog, _request(context=ctx, target_slot="weapon"))
        assert report.budget_base == 98
        assert report.extra_points == 5
        assert report.budget == 103
        assert report.character_class == "warrior"
        assert _names(report, "weapon") == ["Oak Spear"]

    def test_baseline_and_delta(self, sample_catalog: Catalog) -> None:
        req = _request(selected={"helmet": "Cap", "chestplate": "Spiked Mail"}, target_slot="helmet")
        report = evaluate_compatible(sample_catalog, req)
        assert report.baseline.final_spend == 35  # agility -5 on Spiked Mail costs 5
        assert report.baseline.remaining_sp == 165
        assert report.baseline.equip_order_ok is True
        only = report.results["helmet"][0]
        assert only.name == "Iron Helm"
        assert only.final_spend == 75
        assert only.delta_remaining == -40

    def test_improvement_threshold_and_debug(self, sample_catalog: Catalog) -> None:
        ctx = FilterContext(min_improvement=0)
        req = _request(context=ctx, selected={"helmet": "Cap", "chestplate": "Spiked Mail"},
                       target_slot="helmet", debug=True)
        report = evaluate_compatible(sample_catalog, req)
        assert report.results["helmet"] == []
        assert report.debug_excluded.counts == {
            "fails level": 1, "fails improvement threshold": 1,
        }
        assert [s.name for s in report.debug_excluded.samples] == ["Iron Helm"]

    def test_debug_off_has_no_exclusions(self, sample_catalog: Catalog) -> None:
        assert evaluate_compatible(sample_catalog, _request()).debug_excluded is None

    def test_negative_net_bonus_excluded(self, sample_catalog: Catalog) -> None:
        ctx = FilterContext(no_negative_net_bonus=True)
        report = evaluate_compatible(sample_catalog, _request(context=ctx, target_slot="chestplate"))
        assert _names(report, "chestplate") == ["Tunic"]

    def test_final_budget_excluded(self, sample_catalog: Catalog) -> None:
        ctx = FilterContext(budget=10)
        report = evaluate_compatible(sample_catalog, _request(context=ctx, target_slot="helmet"))
        assert _names(report, "helmet") == ["Cap"]

    def test_tomes_count_towards_build(self, sample_catalog: Catalog) -> None:
        report = evaluate_compatible(
            sample_catalog, _request(target_slot="helmet", tomes=["Tome of Might"]))
        iron = next(r for r in report.results["helmet"] if r.name == "Iron Helm")
        assert iron.final_spend == 37

    def test_sorted_then_limited(self, make_item) -> None:
        helmets = [
            make_item(f"Helm {i:02d}", "helmet", requirement=(14 - i, 0, 0, 0, 0))
            for i in range(15)
        ]
        report = evaluate_compatible(Catalog(helmets), _request(target_slot="helmet", limit=10))
        assert _names(report, "helmet") == [f"Helm {i:02d}" for i in range(14, 4, -1)]

    def test_allocation_preview_and_notes(self, sample_catalog: Catalog) -> None:
        report = evaluate_compatible(sample_catalog, _request(target_slot="helmet"))
        assert len(report.allocation_preview) == 7
        first = report.allocation_preview[0]
        assert first.name == "Min spend"
        assert first.remaining == 200
        assert set(first.alloc) == {"strength", "dexterity", "intelligence", "defence", "agility"}
        assert WEAPON_BONUS_NOTE in report.notes
        assert report.data_state.source == "live"

    def test_set_synergy(self, sample_catalog: Catalog) -> None:
        report = evaluate_compatible(sample_catalog, _request(selected={"ring1": "Ring C"}))
        assert report.set_synergy.count == 1
        assert report.set_synergy.groups == {"Agile": ["Ring C"]}


class TestSortCandidates:
    @staticmethod
    def _result(name: str, **kwargs) -> CandidateResult:
        fields = dict(name=name, rarity="Rare", level_req=1, requirement=(0, 0, 0, 0, 0),
                      bonus=(0, 0, 0, 0, 0), final_spend=0, remaining_after=0,
                      delta_remaining=0, negative_tradeoff=0)
        fields.update(kwargs)
        return CandidateResult(**fields)

    def test_highest_stat(self) -> None:
        rs = [self._result("A", bonus=(0, 1, 0, 0, 0)), self._result("B", bonus=(0, 5, 0, 0, 0))]
        assert [r.name for r in sort_candidates(rs, SortOrder.HIGHEST_DEX)] == ["B", "A"]

    def test_lowest_level_then_remaining(self) -> None:
        rs = [
            self._result("A", level_req=10, remaining_after=5),
            self._result("B", level_req=10, remaining_after=9),
            self._result("C", level_req=1),
        ]
        assert [r.name for r in sort_candidates(rs, SortOrder.LOWEST_LEVEL)] == ["C", "B", "A"]

    def test_least_negative(self) -> None:
        rs = [self._result("A", negative_tradeoff=3), self._result("B", negative_tradeoff=0)]
        assert [r.name for r in sort_candidates(rs, SortOrder.LEAST_NEGATIVE)] == ["B", "A"]

    def test_best_remaining_ties_by_spend_then_name(self) -> None:
        rs = [
            self._result("B", remaining_after=5, final_spend=2),
            self._result("A", remaining_after=5, final_spend=2),
            self._result("C", remaining_after=5, final_spend=1),
        ]
        assert [r.name for r in sort_candidates(rs, SortOrder.BEST_REMAINING)] == ["C", "A", "B"]


class TestSetSynergy:
    def test_unknown_set_name(self, make_item) -> None:
        synergy = set_synergy([make_item("Odd", "ring", rarity="set"), make_item("Cap", "helmet")])
        assert synergy.count == 1
        assert synergy.groups == {"(unknown set name)": ["Odd"]}


class TestExplainItem:
    def test_unknown_item(self, sample_catalog: Catalog) -> None:
        result = explain_item(sample_catalog, BuildRequest(), "Nope")
        assert result.found is False
        assert result.passes is False

    def test_filter_reason(self, sample_catalog: Catalog) -> None:
        result = explain_item(sample_catalog, BuildRequest(), "Crown of Ages")
        assert result.reason == "fails level"

    def test_mythic_reason(self, sample_catalog: Catalog) -> None:
        req = BuildRequest(context=FilterContext(no_mythic=True))
        assert explain_item(sample_catalog, req, "Stormstride").reason == "excluded mythic"

    def test_budget_reason(self, sample_catalog: Catalog) -> None:
        req = BuildRequest(context=FilterContext(budget=10))
        assert explain_item(sample_catalog, req, "Iron Helm").reason == "fails final budget"

    def test_improvement_reason(self, sample_catalog: Catalog) -> None:
        req = BuildRequest(context=FilterContext(min_improvement=1))
        assert explain_item(sample_catalog, req, "Cap").reason == "fails improvement threshold"

    def test_passes(self, sample_catalog: Catalog) -> None:
        result = explain_item(sample_catalog, BuildRequest(), " Cap ")
        assert result.item == "Cap"
        assert result.passes is True
        assert result.reason is None

    def test_selected_item_is_not_double_counted(self, sample_catalog: Catalog) -> None:
        req = BuildRequest(selected={"helmet": "Iron Helm"}, context=FilterContext(budget=40))
        assert explain_item(sample_catalog, req, "Iron Helm").passes is True
