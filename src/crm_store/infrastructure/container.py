"""Dependency injection container.

The container is the composition root of a running service. It owns the
configuration, the metrics registry and the CrmBackend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, TypeVar

from crm_store.infrastructure.config import Config, get_config
from crm_store.infrastructure.metrics import MetricsRegistry, get_metrics

if TYPE_CHECKING:
    from crm_store.application.crm_backend import CrmBackend

T = TypeVar("T")


class Container:
    """Maps a type to a ready instance or to a factory building one.

    A factory runs on the first resolve() of its type; the result is kept,
    so each registration yields a single instance per container.
    """

    def __init__(self) -> None:
        self._factories: dict[type, Callable[[Container], Any]] = {}
        self._instances: dict[type, Any] = {}

    def register_singleton(self, interface: type[T], instance: T) -> None:
        """Bind ``interface`` to an existing ``instance``."""
        self._instances[interface] = instance

    def register_factory(
        self,
        interface: type[T],
        factory: Callable[[Container], T],
    ) -> None:
        """Bind ``interface`` to ``factory(container)``, called lazily."""
        self._factories[interface] = factory

    def resolve(self, interface: type[T]) -> T:
        """
        Return the instance bound to ``interface``.

        Raises:
            KeyError: If nothing is registered for the interface
        """
        if interface in self._instances:
            return self._instances[interface]

        factory = self._factories.get(interface)
        if factory is None:
            raise KeyError(f"No registration found for {interface}")

        instance = factory(self)
        self._instances[interface] = instance
        return instance

    def has(self, interface: type) -> bool:
        """Check if an interface is registered."""
        return interface in self._factories or interface in self._instances

    def clear(self) -> None:
        """Drop every registration and cached instance."""
        self._factories.clear()
        self._instances.clear()


def build_container(
    config: Config | None = None,
    metrics: MetricsRegistry | None = None,
) -> Container:
    """Wire the record store's components into a fresh container.

    Args:
        config: Configuration to use (defaults to get_config()).
        metrics: Metrics registry to use (defaults to get_metrics()).

    Returns:
        A container resolving Config, MetricsRegistry and CrmBackend.
        The backend is created lazily and not started.
    """
    from crm_store.application.crm_backend import CrmBackend

    container = Container()
    container.register_singleton(Config, config or get_config())
    container.register_singleton(MetricsRegistry, metrics or get_metrics())

    def backend_factory(c: Container) -> CrmBackend:
        return CrmBackend.from_config(c.resolve(Config), metrics=c.resolve(MetricsRegistry))

    container.register_factory(CrmBackend, backend_factory)
    return container


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the global container instance, building it on first use."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def reset_container() -> None:
    """Reset the global container (useful for testing)."""
    global _container
    if _container is not None:
        _container.clear()
    _container = None
