"""Named-factory dependency container.

Factories are registered under string names and invoked lazily; the first
successful result is cached and returned on every later resolution.
"""

import threading
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from intelliindex.errors import ContainerError, NoFactoryError

T = TypeVar("T")

Factory = Callable[[], Any]


class Container:
    """Thread-safe registry of lazily constructed singletons."""

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._instances: dict[str, Any] = {}
        self._lock = threading.RLock()

    def register(self, name: str, factory: Factory) -> None:
        """Register a zero-argument factory, replacing any previous one and its cached instance."""
        with self._lock:
            self._factories[name] = factory
            self._instances.pop(name, None)

    def resolve(self, name: str) -> Any:
        """Return the singleton registered under name, constructing it on first use.

        Raises:
            NoFactoryError: If nothing is registered under name.
            ContainerError: If the factory raised; the original error is chained.
        """
        instance = self._instances.get(name)
        if instance is not None:
            return instance

        with self._lock:
            # Another thread may have constructed it while we waited.
            if name in self._instances:
                return self._instances[name]
            factory = self._factories.get(name)
            if factory is None:
                raise NoFactoryError(name)
            try:
                instance = factory()
            except Exception as e:
                raise ContainerError(f"failed to construct {name!r}: {e}") from e
            self._instances[name] = instance
            return instance

    def must_resolve(self, name: str, expected_type: type[T]) -> T:
        """Resolve and check the type. Intended for startup wiring, where failure is fatal.

        Raises:
            TypeError: If the resolved instance is not an expected_type.
        """
        instance = self.resolve(name)
        if not isinstance(instance, expected_type):
            raise TypeError(f"{name!r} resolved to {type(instance).__name__}, expected {expected_type.__name__}")
        return instance

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._factories

    def is_resolved(self, name: str) -> bool:
        with self._lock:
            return name in self._instances

    def reset(self) -> None:
        """Drop cached instances but keep the registered factories."""
        with self._lock:
            self._instances.clear()


class AdapterRegistrar(Protocol):
    def register(self, container: Container) -> None: ...


def batch_register(container: Container, *registrars: AdapterRegistrar) -> None:
    for registrar in registrars:
        registrar.register(container)
