"""GearPlanner: the one object request handlers talk to."""
import logging
from collections.abc import Callable
from typing import Any, Optional

from wynnplanner.cache import ResponseCache, fingerprint
from wynnplanner.compat import (
    evaluate_compatible, explain_item, locked_selection, resolve_tomes,
)
from wynnplanner.config import PlannerSettings
from wynnplanner.data import Catalog, CatalogLoader, CatalogService, HttpItemFetcher
from wynnplanner.models import (
    BuildRequest, CompatibilityReport, CompatibilityRequest, DataState,
    Explanation, HealthReport, ItemSummary, SolveReport,
)
from wynnplanner.optimizer import BuildSolver
from wynnplanner.store import FileSnapshotStore

logger = logging.getLogger(__name__)


class GearPlanner:
    """Wires catalog, solver and response cache together.

    Every call reads the current catalog snapshot once, so a concurrent
    reload never mixes two snapshots inside one response.
    """

    def __init__(self, catalog_service: CatalogService, cache: Optional[ResponseCache] = None,
                 settings: Optional[PlannerSettings] = None,
                 solver: Optional[BuildSolver] = None):
        self.settings = settings or PlannerSettings()
        self.catalog_service = catalog_service
        self.cache = cache if cache is not None else ResponseCache(self.settings.response_cache_size)
        self.solver = solver or BuildSolver(
            pool_cap=self.settings.pool_cap,
            ring_pool_cap=self.settings.ring_pool_cap,
            per_skill_cap=self.settings.per_skill_cap,
            node_budget=self.settings.node_budget,
        )
        self.catalog_service.add_reload_listener(self.cache.clear)

    @classmethod
    def from_settings(cls, settings: Optional[PlannerSettings] = None) -> "GearPlanner":
        settings = settings or PlannerSettings.from_env()
        fetcher = HttpItemFetcher(
            url=settings.database_url,
            user_agent=settings.user_agent,
            timeout=settings.request_timeout,
        )
        loader = CatalogLoader(fetcher, FileSnapshotStore(settings.cache_file),
                               ttl_seconds=settings.catalog_ttl_seconds)
        return cls(CatalogService(loader), settings=settings)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def compatible(self, request: CompatibilityRequest) -> CompatibilityReport:
        catalog = self.catalog_service.current()
        return self._cached("compatible", catalog, request, lambda: evaluate_compatible(
            catalog, request, self.settings.per_skill_cap))

    def explain(self, request: BuildRequest, item_name: str) -> Explanation:
        catalog = self.catalog_service.current()
        return explain_item(catalog, request, item_name, self.settings.per_skill_cap)

    def solve(self, request: BuildRequest) -> SolveReport:
        catalog = self.catalog_service.current()
        return self._cached("solve", catalog, request, lambda: self._solve(catalog, request))

    def _solve(self, catalog: Catalog, request: BuildRequest) -> SolveReport:
        locked = locked_selection(catalog, request)
        tomes = resolve_tomes(catalog, request.tomes)
        result = self.solver.solve_build(catalog, request.context, locked, tomes)
        if result.truncated:
            logger.warning("Solve stopped after %d nodes; best build may not be optimal",
                           result.nodes_visited)
        best = result.best
        return SolveReport(
            found=best is not None,
            truncated=result.truncated,
            nodes_visited=result.nodes_visited,
            score=best.score if best else None,
            items=[ItemSummary.from_item(it) for it in best.items] if best else [],
            data_state=catalog.data_state,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reload(self) -> DataState:
        """Force a live reload; cached responses are dropped on success."""
        catalog = self.catalog_service.reload()
        logger.info("Catalog reloaded: generation %d, %d items", catalog.generation, len(catalog))
        return catalog.data_state

    def health(self) -> HealthReport:
        catalog = self.catalog_service.current()
        return HealthReport(
            item_count=len(catalog),
            rarities=catalog.rarities,
            data_state=catalog.data_state,
        )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cached(self, operation: str, catalog: Catalog, request: Any,
                compute: Callable[[], Any]) -> Any:
        key = fingerprint({"op": operation, "generation": catalog.generation, "request": request})
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("Response cache hit for %s", operation)
            return hit
        response = compute()
        self.cache.set(key, response)
        return response
