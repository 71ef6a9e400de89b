"""Named circuit breakers for the prediction service.

A breaker opens after ``fail_max`` counted failures and rejects calls until
``reset_timeout`` seconds have passed; the next call is then a trial that
either closes it again or re-opens it. Exceptions listed in the policy's
``exclude`` pass through without counting.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from pybreaker import CircuitBreaker, CircuitBreakerListener

logger = structlog.get_logger(__name__)

PREDICTION_SERVICE = "prediction_service"


@dataclass(frozen=True)
class BreakerPolicy:
    """Thresholds applied when a breaker is first registered."""

    fail_max: int = 5
    reset_timeout: float = 60.0
    exclude: tuple[type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.fail_max < 1:
            raise ValueError(f"fail_max must be at least 1: {self.fail_max}")
        if self.reset_timeout <= 0:
            raise ValueError(f"reset_timeout must be positive: {self.reset_timeout}")


_registry: dict[str, CircuitBreaker] = {}


class _LoggingListener(CircuitBreakerListener):
    def __init__(self, name: str):
        self.name = name

    def failure(self, cb: CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            "breaker_counted_failure",
            breaker=self.name,
            failures=cb.fail_counter,
            fail_max=cb.fail_max,
            error_type=type(exc).__name__,
        )

    def state_change(self, cb: CircuitBreaker, old_state, new_state) -> None:
        logger.warning(
            "breaker_state_changed",
            breaker=self.name,
            previous=getattr(old_state, "name", None),
            current=new_state.name,
        )


def breaker_for(name: str, policy: BreakerPolicy | None = None) -> CircuitBreaker:
    """Return the breaker registered under ``name``, creating it on first use.

    ``policy`` only takes effect when the breaker is created; later lookups
    return the existing breaker unchanged.
    """
    breaker = _registry.get(name)
    if breaker is None:
        policy = policy or BreakerPolicy()
        breaker = CircuitBreaker(
            fail_max=policy.fail_max,
            reset_timeout=policy.reset_timeout,
            exclude=list(policy.exclude),
            name=name,
            listeners=[_LoggingListener(name)],
        )
        _registry[name] = breaker
        logger.info(
            "breaker_registered",
            breaker=name,
            fail_max=policy.fail_max,
            reset_timeout=policy.reset_timeout,
        )
    return breaker


def breaker_status() -> dict[str, dict[str, Any]]:
    """State and counters of every registered breaker, keyed by name."""
    return {
        name: {
            "state": breaker.current_state,
            "failures": breaker.fail_counter,
            "fail_max": breaker.fail_max,
            "reset_timeout": breaker.reset_timeout,
        }
        for name, breaker in _registry.items()
    }


def close_all_breakers() -> None:
    """Force every open or half-open breaker back to closed."""
    for name, breaker in _registry.items():
        if breaker.current_state != "closed":
            breaker.close()
            logger.info("breaker_closed", breaker=name)
