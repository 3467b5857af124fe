"""Centralized constants for entity kinds, cache keys and queue routing.

This module provides a single source of truth for the names shared by the
record cache, the freshness store, the mutation queue and the HTTP surface.
"""

from typing import Dict, FrozenSet

# =============================================================================
# ENTITY KINDS
# =============================================================================

ENTITY_OUTLET = 'outlet'
ENTITY_SALE = 'sale'
ENTITY_DASHBOARD = 'dashboard'

ENTITY_TYPES: FrozenSet[str] = frozenset([
    ENTITY_OUTLET,
    ENTITY_SALE,
    ENTITY_DASHBOARD,
])

# =============================================================================
# CACHE KEYS (one freshness entry per entity kind, not per record)
# =============================================================================

CACHE_KEY_OUTLETS = 'outlets'
CACHE_KEY_SALES = 'sales'
CACHE_KEY_DASHBOARD_STATS = 'dashboardStats'

CACHE_KEYS: Dict[str, str] = {
    ENTITY_OUTLET: CACHE_KEY_OUTLETS,
    ENTITY_SALE: CACHE_KEY_SALES,
    ENTITY_DASHBOARD: CACHE_KEY_DASHBOARD_STATS,
}

# Single row id used for the aggregated dashboard snapshot
DASHBOARD_STATS_ID = 'current'

# =============================================================================
# MUTATION QUEUE
# =============================================================================

OPERATION_KINDS: FrozenSet[str] = frozenset([
    'create',
    'update',
    'delete',
])

# Remote collection per writable entity type (dashboard stats are read-only)
WRITABLE_COLLECTIONS: Dict[str, str] = {
    ENTITY_SALE: 'sales',
    ENTITY_OUTLET: 'outlets',
}

DEFAULT_QUEUE_MAX_RETRIES = 3

# =============================================================================
# CONNECTIVITY
# =============================================================================

DEFAULT_PROBE_PATH = '/favicon.ico'
DEFAULT_PROBE_TIMEOUT = 3.0

# =============================================================================
# DEFAULT TTLS (seconds)
# =============================================================================

DEFAULT_OUTLETS_TTL = 24 * 60 * 60      # reference data
DEFAULT_SALES_TTL = 60 * 60             # transactional data
DEFAULT_DASHBOARD_TTL = 30 * 60         # aggregated statistics


def is_writable_entity(entity_type: str) -> bool:
    """Check if an entity type can be written through the mutation queue."""
    return entity_type in WRITABLE_COLLECTIONS
