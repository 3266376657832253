from __future__ import annotations

from typing import Callable

from .base import ExtractionStrategy

StrategyFactory = Callable[[], ExtractionStrategy]

_REGISTRY: dict[str, StrategyFactory] = {}


class StrategyRegistrationError(ValueError):
    """Raised when an unknown extraction strategy is requested."""


def register_strategy(name: str) -> Callable[[StrategyFactory], StrategyFactory]:
    def decorator(factory: StrategyFactory) -> StrategyFactory:
        _REGISTRY[name] = factory
        return factory

    return decorator


def create_strategy(name: str) -> ExtractionStrategy:
    factory = _REGISTRY.get(name)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY)) or "none"
        raise StrategyRegistrationError(
            f"Unknown extraction strategy '{name}'. Registered strategies: {available}"
        )
    return factory()


def create_strategies(names: list[str]) -> list[ExtractionStrategy]:
    return [create_strategy(name) for name in names]


def registered_strategies() -> list[str]:
    return sorted(_REGISTRY)
