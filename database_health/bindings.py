"""
Database Health - Database Bindings.

============================================================
MODEL -> DATABASE
============================================================

Maps model classes to the named SQLAlchemy engine serving
them. The name is the database identity used in cache keys
("primary", "animals", ...).

Lookup walks the model's MRO, so binding an abstract base
covers every model inheriting from it. Models without a
binding use the default binding (model=None).

```python
bindings = DatabaseBindings()
bindings.bind(primary_engine)                       # default
bindings.bind(animals_engine, "animals", AnimalsBase)

bindings.resolve(Dog).name  # "animals"
bindings.resolve(User).name  # "primary"
```

============================================================
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Engine

from .config import model_class_of
from .exceptions import DatabaseNotBoundError


logger = logging.getLogger(__name__)


DEFAULT_DATABASE_NAME = "primary"


@dataclass(frozen=True)
class DatabaseBinding:
    """A named engine and the model class it serves (None = default)."""
    name: str
    engine: Engine
    model: Optional[type] = None


class DatabaseBindings:
    """Registry of engine bindings keyed by model class."""

    def __init__(self) -> None:
        self._bindings: Dict[Optional[type], DatabaseBinding] = {}
        self._lock = threading.RLock()

    def bind(
        self,
        engine: Engine,
        name: str = DEFAULT_DATABASE_NAME,
        model: Any = None,
    ) -> DatabaseBinding:
        """
        Bind an engine to a model class.

        Args:
            engine: SQLAlchemy engine
            name: Database identity
            model: Model class or instance. None binds the default.
        """
        model_class = model_class_of(model)
        binding = DatabaseBinding(name=name, engine=engine, model=model_class)

        with self._lock:
            self._bindings[model_class] = binding

        target = model_class.__qualname__ if model_class is not None else "default"
        logger.info(f"Bound database '{name}' for {target}")
        return binding

    def unbind(self, model: Any = None) -> bool:
        """Remove a binding. Returns False if there was none."""
        with self._lock:
            return self._bindings.pop(model_class_of(model), None) is not None

    def resolve(self, model: Any = None) -> DatabaseBinding:
        """
        Find the binding serving a model.

        Raises:
            DatabaseNotBoundError: If neither the model nor the default is bound
        """
        model_class = model_class_of(model)
        bindings = self._bindings

        if model_class is not None:
            for klass in model_class.__mro__:
                binding = bindings.get(klass)
                if binding is not None:
                    return binding

        binding = bindings.get(None)
        if binding is None:
            raise DatabaseNotBoundError(
                model_class.__qualname__ if model_class is not None else "default"
            )
        return binding

    def binding_for_engine(self, engine: Engine) -> Optional[DatabaseBinding]:
        """
        Binding an engine was bound under, if any.

        An engine bound more than once resolves to its default
        binding first, then in bind order.
        """
        for binding in self.all():
            if binding.engine is engine:
                return binding
        return None

    def all(self) -> List[DatabaseBinding]:
        """All bindings, default first."""
        bindings = list(self._bindings.values())
        return sorted(bindings, key=lambda b: b.model is not None)

    def clear(self) -> None:
        with self._lock:
            self._bindings = {}

    def __contains__(self, model: Any) -> bool:
        return model_class_of(model) in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
