"""wynnplanner: Wynncraft gear compatibility and build planner."""

from wynnplanner.config import PlannerSettings
from wynnplanner.data import (
    Catalog, CatalogLoader, CatalogService, HttpItemFetcher,
    PlannerError, DataUnavailable, FetchError, normalize_item,
)
from wynnplanner.store import FileSnapshotStore, StoredSnapshot
from wynnplanner.budget import (
    skill_budget_from_level, minimum_spend, equip_order_feasible, build_stats,
)
from wynnplanner.checker import RejectReason, check_item, filter_candidates
from wynnplanner.models import (
    Item, DataState, FilterContext,
    BuildStats, BuildScore, SolvedBuild, SolveResult,
    BuildRequest, CompatibilityRequest, SortOrder,
    CompatibilityReport, Explanation, SolveReport, HealthReport,
)
from wynnplanner.optimizer import BuildSolver, solve_build
from wynnplanner.compat import evaluate_compatible, explain_item
from wynnplanner.cache import ResponseCache, fingerprint
from wynnplanner.service import GearPlanner

__all__ = [
    # Configuration
    "PlannerSettings",
    # Catalog
    "Catalog", "CatalogLoader", "CatalogService", "HttpItemFetcher",
    "FileSnapshotStore", "StoredSnapshot", "normalize_item",
    # Errors
    "PlannerError", "DataUnavailable", "FetchError",
    # Budget
    "skill_budget_from_level", "minimum_spend", "equip_order_feasible", "build_stats",
    # Validation
    "RejectReason", "check_item", "filter_candidates",
    # Models
    "Item", "DataState", "FilterContext",
    "BuildStats", "BuildScore", "SolvedBuild", "SolveResult",
    "BuildRequest", "CompatibilityRequest", "SortOrder",
    "CompatibilityReport", "Explanation", "SolveReport", "HealthReport",
    # Solver
    "BuildSolver", "solve_build",
    # Compatibility
    "evaluate_compatible", "explain_item",
    # Response cache
    "ResponseCache", "fingerprint",
    # Service
    "GearPlanner",
]
