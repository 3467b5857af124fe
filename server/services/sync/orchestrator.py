"""Cache-first fetch protocol.

Answers "get this data" requests from the in-memory working set, the
persistent record cache, or the remote API, and tags every answer with its
origin so callers can tell a fresh answer from a degraded one.

Resolution order for ``fetch(scope)``:
    1. hydrate an empty working set from the record cache (unless forced)
    2. working set non-empty and freshness not expired -> answer from memory
    3. otherwise probe connectivity
       - online: remote fetch -> merge + mark fresh -> FRESH
                 remote failure -> cache fallback (CACHED) or RemoteFetchError
       - offline: cache (OFFLINE_CACHED) or NoCachedData

Storage failures are logged and treated as an empty tier; they never abort a
fetch.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.cache import RecordCache
from core.exceptions import NoCachedData, PersistenceError, RemoteFetchError
from core.freshness import FreshnessStore
from core.logging import get_logger
from services.connectivity import ConnectivityProbe
from .models import EntitySpec, FetchOrigin, FetchResult, Scope

logger = get_logger(__name__)

OFFLINE_MESSAGE = "You are offline. Showing cached data."


@dataclass
class _WorkingSet:
    """Last answer held in memory for one scope."""
    records: List[Any]
    origin: FetchOrigin
    message: Optional[str] = None


class SyncOrchestrator:
    """Combines record cache, freshness store and connectivity probe."""

    def __init__(self, cache: RecordCache, freshness: FreshnessStore,
                 probe: ConnectivityProbe, specs: Iterable[EntitySpec] = ()):
        self.cache = cache
        self.freshness = freshness
        self.probe = probe
        self._specs: Dict[str, EntitySpec] = {}
        self._working: Dict[Scope, _WorkingSet] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: EntitySpec) -> None:
        """Register (or replace) the wiring for one entity kind."""
        self._specs[spec.name] = spec
        logger.debug("Entity registered", entity=spec.name, cache_key=spec.cache_key, ttl=spec.ttl)

    def spec(self, entity: str) -> EntitySpec:
        try:
            return self._specs[entity]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {entity}") from None

    @property
    def entities(self) -> List[str]:
        return list(self._specs)

    # =========================================================================
    # FETCH PROTOCOL
    # =========================================================================

    async def fetch(self, scope: Scope, force_refresh: bool = False) -> FetchResult:
        """Answer a request for ``scope`` following the cache-first protocol."""
        spec = self.spec(scope.entity)

        working = self._working.get(scope)
        if not force_refresh and (working is None or not working.records):
            records = await self._read_cache(spec, scope)
            if records:
                working = _WorkingSet(records, FetchOrigin.CACHED)
                self._working[scope] = working

        fresh = not await self.freshness.is_expired(spec.cache_key)
        if not force_refresh and working is not None and working.records and fresh:
            logger.debug("Serving working set", scope=str(scope), origin=working.origin.value)
            return self._result(scope, working)

        if await self.probe.check_now():
            return await self._fetch_remote(spec, scope)
        return await self._serve_offline(spec, scope)

    async def _fetch_remote(self, spec: EntitySpec, scope: Scope) -> FetchResult:
        try:
            scope_records, all_records, whole = await self._call_remote(spec, scope)
        except Exception as e:
            if isinstance(e, RemoteFetchError):
                error = e
            else:
                error = RemoteFetchError(spec.name, str(e) or type(e).__name__)
                error.__cause__ = e
            return await self._fallback_after_failure(spec, scope, error)

        await self._merge(spec, scope, scope_records, all_records, whole)
        try:
            await self.freshness.mark_fresh(spec.cache_key, spec.ttl)
        except PersistenceError as e:
            logger.warning("Could not mark cache fresh", key=spec.cache_key, error=str(e))

        working = _WorkingSet(list(scope_records), FetchOrigin.FRESH)
        self._working[scope] = working
        logger.info("Fetched from remote", scope=str(scope), count=len(scope_records))
        return self._result(scope, working)

    async def _call_remote(self, spec: EntitySpec, scope: Scope) -> Tuple[List[Any], List[Any], bool]:
        """Run the matching collaborator.

        Returns ``(scope_records, fetched_records, whole_collection_fetched)``.
        """
        if scope.is_record and spec.fetch_by_id is not None:
            result = await spec.fetch_by_id(scope.record_id)
            self._raise_on_failure(spec, result)
            if result.item is None:
                raise RemoteFetchError(spec.name, f"{scope} not found")
            return [result.item], [result.item], False

        if (not scope.is_whole and not scope.is_record
                and spec.fetch_partition is not None
                and scope.field == spec.partition_field):
            result = await spec.fetch_partition(scope.value)
            self._raise_on_failure(spec, result)
            return list(result.items), list(result.items), False

        result = await spec.fetch_all()
        self._raise_on_failure(spec, result)
        items = list(result.items)
        if scope.is_whole:
            return items, items, True
        selected = [item for item in items if self._in_scope(item, scope)]
        if scope.is_record and not selected:
            raise RemoteFetchError(spec.name, f"{scope} not found")
        return selected, items, True

    @staticmethod
    def _raise_on_failure(spec: EntitySpec, result) -> None:
        if not result.success:
            raise RemoteFetchError(spec.name, result.message or "remote fetch failed")

    async def _fallback_after_failure(self, spec: EntitySpec, scope: Scope,
                                      error: RemoteFetchError) -> FetchResult:
        logger.warning("Remote fetch failed, falling back to cache", scope=str(scope), error=str(error))
        records = await self._read_cache(spec, scope)
        if not records:
            raise error
        working = _WorkingSet(records, FetchOrigin.CACHED, message=f"Showing cached data: {error}")
        self._working[scope] = working
        return self._result(scope, working)

    async def _serve_offline(self, spec: EntitySpec, scope: Scope) -> FetchResult:
        records = await self._read_cache(spec, scope)
        if not records:
            held = self._working.get(scope)
            if held is not None and held.records:
                records = held.records
        if not records:
            logger.info("Offline with no cached data", scope=str(scope))
            raise NoCachedData(str(scope))
        # The offline tag belongs to this answer only; held data replays as cached
        self._working[scope] = _WorkingSet(records, FetchOrigin.CACHED)
        return self._result(scope, _WorkingSet(records, FetchOrigin.OFFLINE_CACHED, message=OFFLINE_MESSAGE))

    # =========================================================================
    # CACHE TIERS
    # =========================================================================

    async def _read_cache(self, spec: EntitySpec, scope: Scope) -> List[Any]:
        """Read the scope from the record cache; storage failure reads as empty."""
        try:
            if scope.is_record:
                record = await self.cache.get(spec.model, scope.record_id)
                return [record] if record is not None else []
            if scope.is_whole:
                return await self.cache.get_all(spec.model)
            return await self.cache.get_by_index(spec.model, scope.field, scope.value)
        except PersistenceError as e:
            logger.warning("Cache read failed, treating as empty", scope=str(scope), error=str(e))
            return []

    async def _merge(self, spec: EntitySpec, scope: Scope, scope_records: List[Any],
                     all_records: List[Any], whole: bool) -> None:
        """Write a successful fetch back to the cache and working sets."""
        if whole:
            try:
                await self.cache.replace_all(spec.model, all_records)
            except PersistenceError as e:
                logger.warning("Cache write failed", entity=spec.name, error=str(e))
            # Partitions may have lost rows: let them re-hydrate
            for held in [s for s in self._working if s.entity == spec.name and s != scope]:
                del self._working[held]
            if not scope.is_whole:
                self._working[Scope.whole(spec.name)] = _WorkingSet(list(all_records), FetchOrigin.FRESH)
            return

        try:
            await self.cache.bulk_put(spec.model, scope_records)
        except PersistenceError as e:
            logger.warning("Cache write failed", entity=spec.name, error=str(e))
        self._union_into_working_sets(spec.name, scope_records, exclude=scope)

    def _union_into_working_sets(self, entity: str, records: List[Any],
                                 exclude: Optional[Scope] = None) -> None:
        """Union ``records`` by id into every held working set they belong to."""
        for held_scope, held in self._working.items():
            if held_scope.entity != entity or held_scope == exclude:
                continue
            incoming = [r for r in records if self._in_scope(r, held_scope)]
            if not incoming:
                continue
            merged = {self._record_id(r): r for r in held.records}
            for record in incoming:
                merged[self._record_id(record)] = record
            held.records = list(merged.values())

    @staticmethod
    def _record_id(record: Any) -> Any:
        return getattr(record, "id", None)

    @staticmethod
    def _in_scope(record: Any, scope: Scope) -> bool:
        if scope.is_record:
            return getattr(record, "id", None) == scope.record_id
        if scope.is_whole:
            return True
        return getattr(record, scope.field, None) == scope.value

    @staticmethod
    def _result(scope: Scope, working: _WorkingSet) -> FetchResult:
        payload: Any = working.records[0] if scope.is_record else list(working.records)
        return FetchResult(payload=payload, origin=working.origin, message=working.message)

    # =========================================================================
    # LOCAL WRITES
    # =========================================================================

    async def upsert_local(self, entity: str, record: Any) -> bool:
        """Apply a locally authored record to the cache and working sets.

        Returns False when the record could only be held in memory.
        """
        spec = self.spec(entity)
        persisted = True
        try:
            await self.cache.put(spec.model, record)
        except PersistenceError as e:
            logger.warning("Local write not persisted", entity=entity, error=str(e))
            persisted = False
        self._union_into_working_sets(entity, [record])
        record_scope = Scope.record(entity, self._record_id(record))
        self._working.setdefault(record_scope, _WorkingSet([record], FetchOrigin.CACHED))
        return persisted

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def preload(self, entity: Optional[str] = None) -> Dict[str, int]:
        """Hydrate whole-collection working sets from the cache, no network."""
        loaded: Dict[str, int] = {}
        names = [entity] if entity else list(self._specs)
        for name in names:
            spec = self.spec(name)
            scope = Scope.whole(name)
            held = self._working.get(scope)
            if held is not None and held.records:
                loaded[name] = len(held.records)
                continue
            records = await self._read_cache(spec, scope)
            if records:
                self._working[scope] = _WorkingSet(records, FetchOrigin.CACHED)
            loaded[name] = len(records)
        logger.info("Cache preloaded", counts=loaded)
        return loaded

    async def clear_cache(self) -> None:
        """Erase cached records, freshness metadata and working sets."""
        await self.cache.clear_all()
        await self.freshness.clear()
        self._working.clear()
        logger.info("Cache cleared")

    async def cache_stats(self) -> Dict[str, Any]:
        """Record counts per entity kind and last update time per cache key."""
        counts: Dict[str, Optional[int]] = {}
        for name, spec in self._specs.items():
            try:
                counts[name] = await self.cache.count(spec.model)
            except PersistenceError:
                counts[name] = None
        last_updated = await self.freshness.last_updated(
            spec.cache_key for spec in self._specs.values()
        )
        return {"counts": counts, "last_updated": last_updated}
