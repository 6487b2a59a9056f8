"""
Database Health - Health Engine.

============================================================
MAIN ORCHESTRATOR
============================================================

DatabaseHealth turns a live database into a load percentage
(active sessions / vCPUs) and answers shedding questions:

- load_pct(model)              -> float
- is_healthy(model)            -> load_pct <= threshold
- sheddable(work, model=...)   -> run work only when healthy
- sheddable_pct(pct, work, ...) -> run work only when load <= pct

============================================================
PIPELINE
============================================================

1. Resolve the model's binding (engine + database name)
   and effective configuration
2. Read "load_pct:<database>" from the cache
3. On a miss: build the adapter, count active sessions
   under the statement timeout, divide by vcpu_count
4. Emit a database_health.load_pct event
5. Write the value back with the configured TTL

============================================================
FAILURE POLICY
============================================================

- Cache read/write fault -> 0.0 (fail-open, work proceeds)
- Adapter/query fault    -> 1.0 (fail-closed, work is shed)
- A cache read fault returns before any query runs, so a
  cache outage masks a database outage.
- UnsupportedAdapterError propagates.

============================================================
"""

import threading
from typing import Any, Callable, List, Optional, Tuple
import logging

from sqlalchemy.engine import Engine

from .adapters import AdapterFactory, QUERY_TIMEOUT_SECONDS
from .bindings import DEFAULT_DATABASE_NAME, DatabaseBinding, DatabaseBindings
from .config import (
    ConfigurationStore,
    EffectiveConfiguration,
    HealthConfiguration,
    get_store,
    reset_store,
)
from .events import EventBus, LoadPctEvent
from .exceptions import CacheError, DatabaseNotBoundError, QueryError, UnsupportedAdapterError
from .models import LoadSample, LoadSnapshot, cache_key


logger = logging.getLogger(__name__)


FAIL_OPEN_LOAD_PCT = CacheError.fail_safe_value
FAIL_CLOSED_LOAD_PCT = QueryError.fail_safe_value


class DatabaseHealth:
    """
    Health-decision engine for one application.

    ============================================================
    USAGE
    ============================================================

    ```python
    health = DatabaseHealth()
    health.store.configure(vcpu_count=16, cache=MemoryCache())
    health.bind(engine)

    if health.is_healthy():
        refresh_recommendations()

    health.sheddable(send_digest_emails, user_id, model=User)
    ```

    ============================================================
    """

    def __init__(
        self,
        store: Optional[ConfigurationStore] = None,
        bindings: Optional[DatabaseBindings] = None,
        events: Optional[EventBus] = None,
        query_timeout: float = QUERY_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize engine.

        Args:
            store: Configuration store (default: process-wide store)
            bindings: Model -> engine bindings
            events: Event bus for load samples
            query_timeout: Statement timeout for the probe, in seconds
        """
        self._store = store
        self.bindings = bindings if bindings is not None else DatabaseBindings()
        self.events = events if events is not None else EventBus()
        self.query_timeout = query_timeout

    @property
    def store(self) -> ConfigurationStore:
        """Injected store, or the process-wide one at call time."""
        if self._store is not None:
            return self._store
        return get_store()

    def bind(
        self,
        engine: Engine,
        name: str = DEFAULT_DATABASE_NAME,
        model: Any = None,
    ) -> DatabaseBinding:
        """Bind an engine to a model class (None = default)."""
        return self.bindings.bind(engine, name, model)

    def config_for(self, model: Any = None) -> EffectiveConfiguration:
        return self.store.for_model(model)

    # =========================================================
    # LOAD
    # =========================================================

    def load_pct(self, model: Any = None) -> float:
        """
        Load percentage of the database serving model.

        Returns:
            0.0 or more. 0.0 on cache faults, 1.0 on query faults.

        Raises:
            DatabaseNotBoundError: If no engine serves the model
            UnsupportedAdapterError: If the engine's dialect has no adapter
        """
        binding = self.bindings.resolve(model)
        return self._load_pct(binding.engine, binding.name, self.config_for(model))

    def load_pct_for_engine(
        self,
        engine: Engine,
        database_name: Optional[str] = None,
        model: Any = None,
    ) -> float:
        """
        Load percentage for an engine given directly.

        The database name and the model whose configuration applies
        default to those of the binding the engine was bound under,
        so the value cached here matches what load_pct(model) computes.

        Raises:
            DatabaseNotBoundError: If the engine is unbound and no name is given
        """
        name, model = self._engine_identity(engine, database_name, model)
        return self._load_pct(engine, name, self.config_for(model))

    def is_engine_healthy(
        self,
        engine: Engine,
        database_name: Optional[str] = None,
        model: Any = None,
    ) -> bool:
        """True when an engine is at or below the threshold of its binding."""
        name, model = self._engine_identity(engine, database_name, model)
        config = self.config_for(model)
        return self._load_pct(engine, name, config) <= config.threshold

    def _engine_identity(
        self,
        engine: Engine,
        database_name: Optional[str],
        model: Any,
    ) -> Tuple[str, Any]:
        binding = self.bindings.binding_for_engine(engine)
        if binding is not None:
            if model is None:
                model = binding.model
            if database_name is None:
                database_name = binding.name

        if not database_name:
            raise DatabaseNotBoundError(repr(engine))
        return database_name, model

    def _load_pct(
        self,
        engine: Engine,
        database_name: str,
        config: EffectiveConfiguration,
    ) -> float:
        key = cache_key(database_name)
        cache = config.cache

        if cache is None:
            logger.warning(f"[{database_name}] No cache configured, assuming healthy")
            return FAIL_OPEN_LOAD_PCT

        try:
            cached = cache.read(key)
            if cached is not None:
                logger.debug(f"[{database_name}] Cached load_pct: {cached}")
                return float(cached)
        except Exception as e:
            logger.warning(f"[{database_name}] Cache read failed, assuming healthy: {e}")
            return FAIL_OPEN_LOAD_PCT

        value = self._query_load_pct(engine, database_name, config)

        try:
            cache.write(key, value, config.cache_ttl)
        except Exception as e:
            logger.warning(f"[{database_name}] Cache write failed, assuming healthy: {e}")
            return FAIL_OPEN_LOAD_PCT

        return value

    def _query_load_pct(
        self,
        engine: Engine,
        database_name: str,
        config: EffectiveConfiguration,
    ) -> float:
        try:
            adapter = AdapterFactory.build(engine)
            active_sessions = adapter.count_active_sessions(engine, self.query_timeout)
            sample = LoadSample(
                database_name=database_name,
                active_sessions=active_sessions,
                vcpu_count=config.vcpu_count,
            )
            load_pct = sample.load_pct
        except UnsupportedAdapterError:
            raise
        except Exception as e:
            logger.warning(
                f"[{database_name}] Load query failed, assuming fully loaded: {e}"
            )
            return FAIL_CLOSED_LOAD_PCT

        logger.debug(
            f"[{database_name}] Load: {load_pct:.3f} "
            f"({active_sessions} active / {config.vcpu_count} vCPU)"
        )

        self.events.emit(LoadPctEvent(
            database_name=database_name,
            load_pct=load_pct,
            active_sessions=active_sessions,
        ))

        return load_pct

    # =========================================================
    # DECISIONS
    # =========================================================

    def is_healthy(self, model: Any = None) -> bool:
        """True when load_pct is at or below the configured threshold."""
        return self.load_pct(model) <= self.config_for(model).threshold

    def sheddable(
        self,
        work: Callable[..., Any],
        *args: Any,
        model: Any = None,
        **kwargs: Any,
    ) -> bool:
        """
        Run work only while the database is healthy.

        Exceptions raised by work propagate.

        Returns:
            True if work ran, False if it was shed
        """
        if not self.is_healthy(model):
            logger.debug(f"Shed {getattr(work, '__qualname__', work)!s}: database unhealthy")
            return False

        work(*args, **kwargs)
        return True

    def sheddable_pct(
        self,
        pct: float,
        work: Callable[..., Any],
        *args: Any,
        model: Any = None,
        **kwargs: Any,
    ) -> bool:
        """
        Run work only while load_pct is at or below pct.

        The configured threshold is ignored.

        Returns:
            True if work ran, False if it was shed
        """
        if self.load_pct(model) > pct:
            logger.debug(f"Shed {getattr(work, '__qualname__', work)!s}: load above {pct}")
            return False

        work(*args, **kwargs)
        return True

    # =========================================================
    # DIAGNOSTICS
    # =========================================================

    def snapshot(self, model: Any = None) -> LoadSnapshot:
        """Load, threshold and verdict for the database serving model."""
        binding = self.bindings.resolve(model)
        config = self.config_for(model)

        return LoadSnapshot(
            database_name=binding.name,
            load_pct=self._load_pct(binding.engine, binding.name, config),
            threshold=config.threshold,
            max_healthy_sessions=config.max_healthy_sessions,
        )

    def snapshots(self) -> List[LoadSnapshot]:
        """Snapshot of every bound database."""
        return [self.snapshot(binding.model) for binding in self.bindings.all()]


# =============================================================
# GLOBAL ENGINE SINGLETON
# =============================================================


_default_health: Optional[DatabaseHealth] = None
_health_lock = threading.Lock()


def get_health() -> DatabaseHealth:
    """
    Get the process-wide health engine.

    Creates one if it doesn't exist. It reads the process-wide
    configuration store.
    """
    global _default_health

    with _health_lock:
        if _default_health is None:
            _default_health = DatabaseHealth()
        return _default_health


def set_health(health: DatabaseHealth) -> None:
    """Set the process-wide health engine."""
    global _default_health

    with _health_lock:
        _default_health = health


def reset() -> None:
    """Forget the process-wide configuration, bindings and subscribers."""
    global _default_health

    reset_store()
    with _health_lock:
        _default_health = None


def configure(
    mutator: Optional[Callable[[HealthConfiguration], None]] = None,
    **values: Any,
) -> HealthConfiguration:
    """Configure the process-wide default configuration."""
    return get_health().store.configure(mutator, **values)


def for_model(
    model: Any = None,
    mutator: Optional[Callable[[HealthConfiguration], None]] = None,
    **values: Any,
) -> EffectiveConfiguration:
    """Get (and optionally define) a model's configuration."""
    return get_health().store.for_model(model, mutator, **values)


def validate_configuration(store: Optional[ConfigurationStore] = None) -> None:
    """
    Boot-time validation hook.

    Schedule it after every configuration source has run.

    Raises:
        ConfigurationError: If the configuration is incomplete
    """
    (store if store is not None else get_health().store).validate()


def bind(engine: Engine, name: str = DEFAULT_DATABASE_NAME, model: Any = None) -> DatabaseBinding:
    return get_health().bind(engine, name, model)


def load_pct(model: Any = None) -> float:
    return get_health().load_pct(model)


def is_healthy(model: Any = None) -> bool:
    return get_health().is_healthy(model)


def sheddable(work: Callable[..., Any], *args: Any, model: Any = None, **kwargs: Any) -> bool:
    return get_health().sheddable(work, *args, model=model, **kwargs)


def sheddable_pct(
    pct: float,
    work: Callable[..., Any],
    *args: Any,
    model: Any = None,
    **kwargs: Any,
) -> bool:
    return get_health().sheddable_pct(pct, work, *args, model=model, **kwargs)
