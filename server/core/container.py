"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cache import RecordCache
from core.freshness import FreshnessStore
from services.connectivity import ConnectivityProbe
from services.remote import RemoteApiClient, OutletApi, SalesApi, DashboardApi
from services.stores import build_entity_specs, OutletStore, SalesStore, DashboardStore
from services.sync import SyncOrchestrator, MutationQueue, HttpOperationExecutor, LoggingNotifier


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Local replica
    database = providers.Singleton(
        Database,
        settings=settings
    )

    cache = providers.Singleton(
        RecordCache,
        database=database
    )

    freshness = providers.Singleton(
        FreshnessStore,
        database=database
    )

    # Connectivity (sole writer of the online/offline state)
    probe = providers.Singleton(
        ConnectivityProbe,
        probe_url=settings.provided.resolved_probe_url,
        timeout=settings.provided.probe_timeout
    )

    # Remote API
    api_client = providers.Singleton(
        RemoteApiClient,
        base_url=settings.provided.api_base_url,
        timeout=settings.provided.api_timeout
    )

    outlet_api = providers.Singleton(OutletApi, client=api_client)
    sales_api = providers.Singleton(SalesApi, client=api_client)
    dashboard_api = providers.Singleton(DashboardApi, client=api_client)

    # Sync engine
    orchestrator = providers.Singleton(
        SyncOrchestrator,
        cache=cache,
        freshness=freshness,
        probe=probe,
        specs=providers.Callable(
            build_entity_specs,
            settings=settings,
            outlet_api=outlet_api,
            sales_api=sales_api,
            dashboard_api=dashboard_api
        )
    )

    executor = providers.Singleton(
        HttpOperationExecutor,
        base_url=settings.provided.api_base_url,
        timeout=settings.provided.api_timeout
    )

    notifier = providers.Singleton(
        LoggingNotifier
    )

    queue = providers.Singleton(
        MutationQueue,
        database=database,
        probe=probe,
        executor=executor,
        notifier=notifier,
        max_retries=settings.provided.queue_max_retries
    )

    # Stores
    outlet_store = providers.Factory(
        OutletStore,
        orchestrator=orchestrator,
        cache=cache
    )

    sales_store = providers.Factory(
        SalesStore,
        orchestrator=orchestrator,
        queue=queue
    )

    dashboard_store = providers.Factory(
        DashboardStore,
        orchestrator=orchestrator
    )


# Global container instance
container = Container()
