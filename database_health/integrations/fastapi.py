"""
Database Health - FastAPI Integration.

============================================================
BOOT HOOK + DIAGNOSTICS ROUTER
============================================================

health_lifespan() validates the configuration when the
application starts. That happens after every module-level
configure() call has run, so validation never fires before
the user's own configuration code.

create_health_router() exposes GET /database-health with
one entry per bound database.

```python
app = FastAPI(lifespan=health_lifespan())
app.include_router(create_health_router())
```

============================================================
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncContextManager, AsyncIterator, Callable, List, Optional
import logging

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel, Field

from ..config import ConfigurationStore
from ..exceptions import DatabaseHealthError
from ..health import DatabaseHealth, get_health, validate_configuration


logger = logging.getLogger(__name__)


# =======================
# SCHEMAS
# =======================

class DatabaseLoad(BaseModel):
    database_name: str
    load_pct: float
    threshold: float
    healthy: bool
    max_healthy_sessions: int


class DatabaseHealthResponse(BaseModel):
    success: bool
    healthy: bool
    data: List[DatabaseLoad]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =======================
# LIFESPAN
# =======================

def health_lifespan(
    store: Optional[ConfigurationStore] = None,
) -> Callable[[FastAPI], AsyncContextManager[None]]:
    """
    Lifespan validating the database health configuration at startup.

    Args:
        store: Store to validate (default: the process-wide engine's store)
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        validate_configuration(store)
        logger.info("Database health configuration validated at startup")
        yield

    return lifespan


# =======================
# ROUTER
# =======================

def create_health_router(
    health: Optional[DatabaseHealth] = None,
    prefix: str = "/database-health",
) -> APIRouter:
    """Router reporting the load of every bound database."""
    router = APIRouter(prefix=prefix, tags=["Database Health"])

    @router.get("", response_model=DatabaseHealthResponse)
    def get_database_health() -> DatabaseHealthResponse:
        current = health if health is not None else get_health()

        try:
            snapshots = current.snapshots()
        except DatabaseHealthError as e:
            logger.error(f"Database health report failed: {e}")
            raise HTTPException(status_code=500, detail=e.to_dict())

        data = [DatabaseLoad(**snapshot.to_dict()) for snapshot in snapshots]
        return DatabaseHealthResponse(
            success=True,
            healthy=all(item.healthy for item in data),
            data=data,
        )

    return router
