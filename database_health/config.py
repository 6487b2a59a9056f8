"""
Database Health - Configuration.

============================================================
HIERARCHICAL CONFIGURATION
============================================================

A default configuration plus per-model overrides:
- vcpu_count  (required) denominator of the load ratio
- threshold   (default 0.75) highest healthy load_pct
- cache       (required) cache port holding recent load_pct
- cache_ttl   (default 60s) lifetime of a cached value

Overrides inherit unset fields from the default when they
are read, never when they are written. Changing the default
after defining an override still reaches every field the
override left unset.

Configuration can be loaded from:
- Keyword arguments / mutator callables
- Environment variables (and .env files)
- YAML config file

============================================================
"""

import math
import os
import threading
from dataclasses import dataclass, fields as dataclass_fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
import logging

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_THRESHOLD = 0.75
DEFAULT_CACHE_TTL_SECONDS = 60.0

ENV_VCPU_COUNT = "DB_HEALTH_VCPU_COUNT"
ENV_THRESHOLD = "DB_HEALTH_THRESHOLD"
ENV_CACHE_TTL = "DB_HEALTH_CACHE_TTL"


Mutator = Callable[["HealthConfiguration"], None]


def model_class_of(model: Any) -> Optional[type]:
    """Classes are their own identity, instances use their class."""
    if model is None:
        return None
    if isinstance(model, type):
        return model
    return type(model)


def _ttl_seconds(value: Union[int, float, timedelta]) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


# =============================================================
# CONFIGURATION RECORDS
# =============================================================


@dataclass
class HealthConfiguration:
    """
    Configuration as written by the application.

    None means "not set here". On an override it falls back
    to the default configuration.
    """
    vcpu_count: Optional[int] = None
    threshold: Optional[float] = None
    cache: Optional[Any] = None
    cache_ttl: Optional[Union[int, float, timedelta]] = None

    @classmethod
    def defaults(cls) -> "HealthConfiguration":
        """Default configuration with built-in threshold and TTL."""
        return cls(
            threshold=DEFAULT_THRESHOLD,
            cache_ttl=DEFAULT_CACHE_TTL_SECONDS,
        )

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclass_fields(cls))

    def update(self, **values: Any) -> None:
        """
        Set several fields at once.

        Raises:
            ConfigurationError: On an unknown field name
        """
        known = self.field_names()
        for name, value in values.items():
            if name not in known:
                raise ConfigurationError(
                    f"Unknown configuration field: {name}",
                    config_key=name,
                )
            setattr(self, name, value)


@dataclass(frozen=True)
class EffectiveConfiguration:
    """Fully resolved configuration for one model."""
    vcpu_count: Optional[int]
    threshold: float
    cache: Optional[Any]
    cache_ttl: float

    @property
    def max_healthy_sessions(self) -> int:
        """Most active sessions that still count as healthy."""
        if not self.vcpu_count:
            return 0
        return math.floor(self.vcpu_count * self.threshold)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (cache shown by type only)."""
        return {
            "vcpu_count": self.vcpu_count,
            "threshold": self.threshold,
            "cache": type(self.cache).__name__ if self.cache is not None else None,
            "cache_ttl": self.cache_ttl,
            "max_healthy_sessions": self.max_healthy_sessions,
        }


def resolve(
    default: HealthConfiguration,
    override: Optional[HealthConfiguration] = None,
) -> EffectiveConfiguration:
    """
    Resolve an override against the default.

    Pure: neither argument is modified or copied into the other.
    """
    def pick(name: str) -> Any:
        if override is not None:
            value = getattr(override, name)
            if value is not None:
                return value
        return getattr(default, name)

    threshold = pick("threshold")
    cache_ttl = pick("cache_ttl")

    return EffectiveConfiguration(
        vcpu_count=pick("vcpu_count"),
        threshold=float(threshold) if threshold is not None else DEFAULT_THRESHOLD,
        cache=pick("cache"),
        cache_ttl=_ttl_seconds(cache_ttl) if cache_ttl is not None else DEFAULT_CACHE_TTL_SECONDS,
    )


# =============================================================
# CONFIGURATION STORE
# =============================================================


class ConfigurationStore:
    """
    Default configuration plus per-model overrides.

    ============================================================
    USAGE
    ============================================================

    ```python
    store = ConfigurationStore()
    store.configure(vcpu_count=16, cache=MemoryCache())

    # Override for every model inheriting from AnimalsBase
    store.for_model(AnimalsBase, vcpu_count=8, threshold=0.5)

    store.validate()  # once, after all configuration has run
    store.for_model(Dog).threshold  # 0.5
    ```

    ============================================================
    """

    def __init__(self, default: Optional[HealthConfiguration] = None) -> None:
        self._default = default if default is not None else HealthConfiguration.defaults()
        self._overrides: Dict[type, HealthConfiguration] = {}
        self._lock = threading.RLock()

    @property
    def default(self) -> HealthConfiguration:
        """The default configuration (mutable)."""
        return self._default

    @property
    def overrides(self) -> Dict[type, HealthConfiguration]:
        """Copy of the per-model overrides."""
        return dict(self._overrides)

    # =========================================================
    # WRITING
    # =========================================================

    def configure(
        self,
        mutator: Optional[Mutator] = None,
        **values: Any,
    ) -> HealthConfiguration:
        """
        Apply settings to the default configuration.

        Calls layer on top of each other. Keyword values are
        applied first, then the mutator.
        """
        with self._lock:
            self._default.update(**values)
            if mutator is not None:
                mutator(self._default)
        return self._default

    def for_model(
        self,
        model: Any = None,
        mutator: Optional[Mutator] = None,
        **values: Any,
    ) -> EffectiveConfiguration:
        """
        Get (and optionally define) the configuration for a model.

        Args:
            model: Model class or instance. None means the default.
            mutator: Callable applied to the model's override
            **values: Fields to set on the model's override

        Returns:
            EffectiveConfiguration resolved at call time
        """
        model_class = model_class_of(model)

        if mutator is not None or values:
            if model_class is None:
                self.configure(mutator, **values)
            else:
                with self._lock:
                    override = self._overrides.get(model_class)
                    if override is None:
                        override = HealthConfiguration()
                    override.update(**values)
                    if mutator is not None:
                        mutator(override)
                    self._overrides[model_class] = override
                logger.debug(f"Configured database health override for {model_class.__qualname__}")

        return resolve(self._default, self._find_override(model_class))

    def reset(self) -> None:
        """Drop the default configuration and all overrides."""
        with self._lock:
            self._default = HealthConfiguration.defaults()
            self._overrides = {}

    # =========================================================
    # READING
    # =========================================================

    def _find_override(self, model_class: Optional[type]) -> Optional[HealthConfiguration]:
        if model_class is None:
            return None

        overrides = self._overrides
        for klass in model_class.__mro__:
            override = overrides.get(klass)
            if override is not None:
                return override
        return None

    def max_healthy_sessions(self, model: Any = None) -> int:
        """floor(vcpu_count * threshold) for a model."""
        return self.for_model(model).max_healthy_sessions

    # =========================================================
    # VALIDATION
    # =========================================================

    def validate(self) -> None:
        """
        Check every resolved configuration.

        Must run after all configuration sources have applied,
        otherwise it fails on settings that arrive later.

        Raises:
            ConfigurationError: Naming the first invalid field
        """
        targets: List[Tuple[str, EffectiveConfiguration]] = [
            ("default", resolve(self._default)),
        ]
        for model_class, override in list(self._overrides.items()):
            targets.append((model_class.__qualname__, resolve(self._default, override)))

        for label, effective in targets:
            try:
                _validate_effective(effective)
            except ConfigurationError as e:
                logger.error(f"Invalid database health configuration ({label}): {e.message}")
                raise

        logger.info(f"Database health configuration valid ({len(targets)} configuration(s))")

    # =========================================================
    # LOADERS
    # =========================================================

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConfigurationStore":
        """
        Build a store from a plain mapping.

        Only scalar fields are read. The cache must be configured
        in code.
        """
        store = cls()
        values: Dict[str, Any] = {}

        try:
            if data.get("vcpu_count") is not None:
                values["vcpu_count"] = int(data["vcpu_count"])
            if data.get("threshold") is not None:
                values["threshold"] = float(data["threshold"])
            if data.get("cache_ttl") is not None:
                values["cache_ttl"] = float(data["cache_ttl"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid database health setting: {e}") from e

        store.configure(**values)
        return store

    @classmethod
    def from_env(cls) -> "ConfigurationStore":
        """
        Load configuration from environment variables.

        Environment variables:
        - DB_HEALTH_VCPU_COUNT
        - DB_HEALTH_THRESHOLD
        - DB_HEALTH_CACHE_TTL
        """
        load_dotenv()

        return cls.from_mapping({
            "vcpu_count": os.getenv(ENV_VCPU_COUNT),
            "threshold": os.getenv(ENV_THRESHOLD),
            "cache_ttl": os.getenv(ENV_CACHE_TTL),
        })

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ConfigurationStore":
        """
        Load configuration from a YAML file.

        Expects a top-level `database_health` section, or the
        fields at the top level.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML config {path} must contain a mapping")

        section = data.get("database_health", data)
        return cls.from_mapping(section)


def _validate_effective(config: EffectiveConfiguration) -> None:
    vcpu_count = config.vcpu_count
    if vcpu_count is None:
        raise ConfigurationError("vcpu_count must be configured", config_key="vcpu_count")
    if isinstance(vcpu_count, bool) or not isinstance(vcpu_count, int) or vcpu_count <= 0:
        raise ConfigurationError(
            "vcpu_count must be a positive integer",
            config_key="vcpu_count",
            actual_value=vcpu_count,
        )

    if config.cache is None:
        raise ConfigurationError("cache must be configured", config_key="cache")

    if not 0 < config.threshold <= 1:
        raise ConfigurationError(
            "threshold must be greater than 0 and at most 1",
            config_key="threshold",
            actual_value=config.threshold,
        )

    if config.cache_ttl <= 0:
        raise ConfigurationError(
            "cache_ttl must be positive",
            config_key="cache_ttl",
            actual_value=config.cache_ttl,
        )


# =============================================================
# GLOBAL STORE SINGLETON
# =============================================================


_default_store: Optional[ConfigurationStore] = None
_store_lock = threading.Lock()


def get_store() -> ConfigurationStore:
    """Get the process-wide configuration store, creating it lazily."""
    global _default_store

    with _store_lock:
        if _default_store is None:
            _default_store = ConfigurationStore()
        return _default_store


def set_store(store: ConfigurationStore) -> None:
    """Replace the process-wide configuration store."""
    global _default_store

    with _store_lock:
        _default_store = store


def reset_store() -> None:
    """Forget the process-wide store. The next get_store() starts empty."""
    global _default_store

    with _store_lock:
        _default_store = None
