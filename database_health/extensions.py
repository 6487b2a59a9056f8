"""
Database Health - Connection and Model Helpers.

Shortcuts for asking an engine or a model about its health.
They only delegate to DatabaseHealth.

```python
from database_health.extensions import connection_healthy, database_healthy

connection_healthy(engine)   # engine must be bound
database_healthy(Dog)        # uses Dog's binding and configuration
```
"""

from typing import Any, Optional

from sqlalchemy.engine import Engine

from .health import DatabaseHealth, get_health


def _health_or_default(health: Optional[DatabaseHealth]) -> DatabaseHealth:
    return health if health is not None else get_health()


def connection_load_pct(engine: Engine, health: Optional[DatabaseHealth] = None) -> float:
    """Load percentage of a bound engine, using its binding's configuration."""
    return _health_or_default(health).load_pct_for_engine(engine)


def connection_healthy(engine: Engine, health: Optional[DatabaseHealth] = None) -> bool:
    """True when a bound engine is at or below its binding's threshold."""
    return _health_or_default(health).is_engine_healthy(engine)


def database_load_pct(model: Any, health: Optional[DatabaseHealth] = None) -> float:
    return _health_or_default(health).load_pct(model)


def database_healthy(model: Any, health: Optional[DatabaseHealth] = None) -> bool:
    return _health_or_default(health).is_healthy(model)
