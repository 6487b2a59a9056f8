"""
Database Health - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- DatabaseEngine: Supported database engine families
- LoadSample: One freshly computed load measurement
- LoadSnapshot: Diagnostic view of a database's load
- cache_key(): Stable cache key for a database

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


CACHE_KEY_PREFIX = "load_pct:"


def cache_key(database_name: str) -> str:
    """
    Build the cache key for a database.

    The format is read by external tooling and must stay stable.
    """
    return f"{CACHE_KEY_PREFIX}{database_name}"


# =============================================================
# ENUMS
# =============================================================


class DatabaseEngine(str, Enum):
    """
    Database engine families with a health adapter.

    MariaDB is served by the MySQL family.
    """
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


# =============================================================
# LOAD SAMPLE
# =============================================================


@dataclass(frozen=True)
class LoadSample:
    """
    A load measurement taken on a cache miss.

    Not persisted beyond the cache entry.
    """
    database_name: str
    active_sessions: int
    vcpu_count: int
    measured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def load_pct(self) -> float:
        """Active sessions per provisioned vCPU."""
        return self.active_sessions / self.vcpu_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "database_name": self.database_name,
            "active_sessions": self.active_sessions,
            "vcpu_count": self.vcpu_count,
            "load_pct": self.load_pct,
            "measured_at": self.measured_at.isoformat(),
        }


# =============================================================
# LOAD SNAPSHOT
# =============================================================


@dataclass(frozen=True)
class LoadSnapshot:
    """Load of one database together with the verdict it produced."""
    database_name: str
    load_pct: float
    threshold: float
    max_healthy_sessions: int

    @property
    def healthy(self) -> bool:
        """Same comparison as DatabaseHealth.is_healthy()."""
        return self.load_pct <= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "database_name": self.database_name,
            "load_pct": self.load_pct,
            "threshold": self.threshold,
            "healthy": self.healthy,
            "max_healthy_sessions": self.max_healthy_sessions,
        }
