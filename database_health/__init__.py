"""
Database Health - Load Shedding Module.

============================================================
DATABASE LOAD AS A SHEDDING SIGNAL
============================================================

This module measures how saturated a relational database
is and lets callers skip non-critical work while it is.

    load_pct = active sessions / provisioned vCPUs

The value is cached briefly (default 60s) so health checks
do not add load of their own. The probe query runs under a
1 second server-side statement timeout.

============================================================
FAILURE POLICY
============================================================

- Cache unavailable  -> load_pct 0.0 (work proceeds)
- Database query fails -> load_pct 1.0 (work is shed)

A cache outage therefore disables shedding entirely.

============================================================
USAGE
============================================================

```python
import database_health
from database_health import MemoryCache

database_health.configure(vcpu_count=16, cache=MemoryCache())
database_health.for_model(AnimalsBase, vcpu_count=8, threshold=0.5)

database_health.bind(primary_engine)
database_health.bind(animals_engine, "animals", AnimalsBase)

database_health.validate_configuration()  # once, at boot

if database_health.is_healthy(Dog):
    warm_caches()

database_health.sheddable(send_newsletter, user_id, model=User)
database_health.sheddable_pct(0.5, rebuild_search_index)
```

============================================================
"""

from .models import (
    DatabaseEngine,
    LoadSample,
    LoadSnapshot,
    cache_key,
)
from .config import (
    ConfigurationStore,
    EffectiveConfiguration,
    HealthConfiguration,
    resolve,
    get_store,
    set_store,
    reset_store,
)
from .exceptions import (
    DatabaseHealthError,
    Operation,
    ConfigurationError,
    UnsupportedAdapterError,
    DatabaseNotBoundError,
    CacheError,
    QueryError,
)
from .cache import BaseCache, MemoryCache, RedisCache
from .adapters import (
    DatabaseAdapter,
    PostgreSQLAdapter,
    MySQLAdapter,
    AdapterFactory,
    engine_for_adapter_name,
    QUERY_TIMEOUT_SECONDS,
)
from .bindings import DatabaseBinding, DatabaseBindings
from .events import EventBus, LoadPctEvent, LOAD_PCT_EVENT
from .health import (
    DatabaseHealth,
    get_health,
    set_health,
    reset,
    configure,
    for_model,
    validate_configuration,
    bind,
    load_pct,
    is_healthy,
    sheddable,
    sheddable_pct,
)


__all__ = [
    # Models
    "DatabaseEngine",
    "LoadSample",
    "LoadSnapshot",
    "cache_key",
    # Config
    "ConfigurationStore",
    "EffectiveConfiguration",
    "HealthConfiguration",
    "resolve",
    "get_store",
    "set_store",
    "reset_store",
    # Exceptions
    "DatabaseHealthError",
    "Operation",
    "ConfigurationError",
    "UnsupportedAdapterError",
    "DatabaseNotBoundError",
    "CacheError",
    "QueryError",
    # Cache
    "BaseCache",
    "MemoryCache",
    "RedisCache",
    # Adapters
    "DatabaseAdapter",
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "AdapterFactory",
    "engine_for_adapter_name",
    "QUERY_TIMEOUT_SECONDS",
    # Core
    "DatabaseBinding",
    "DatabaseBindings",
    "EventBus",
    "LoadPctEvent",
    "LOAD_PCT_EVENT",
    "DatabaseHealth",
    "get_health",
    "set_health",
    "reset",
    "configure",
    "for_model",
    "validate_configuration",
    "bind",
    "load_pct",
    "is_healthy",
    "sheddable",
    "sheddable_pct",
]
