# src/stem_rag/utils/circuit_breaker.py
"""
Circuit breaker for calls to external providers.
Stops hammering an embedding provider that keeps failing and lets it recover.
"""

from enum import Enum
from typing import Optional, Callable, Dict, Any
from dataclasses import dataclass
import asyncio
import time

from .monitoring import logger, error_counter
from .exceptions import RAGException


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"        # Normal operation, calls allowed
    OPEN = "open"            # Provider is failing, calls rejected
    HALF_OPEN = "half_open"  # Probing whether the provider recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior"""
    failure_threshold: int = 5
    recovery_timeout: float = 30.0  # seconds
    success_threshold: int = 2  # successes needed in HALF_OPEN to close
    timeout: Optional[float] = None  # per-call timeout in seconds


class CircuitBreakerError(RAGException):
    """Raised when a call is rejected because the circuit is open"""
    pass


class CircuitBreaker:
    """
    Async circuit breaker.

    Usage:
        breaker = CircuitBreaker("embeddings_openai", CircuitBreakerConfig(failure_threshold=3))
        response = await breaker.call_async(client.embeddings.create, model=..., input=...)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._total_calls = 0
        self._failed_calls = 0
        self._rejected_calls = 0

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the recovery timeout passed"""
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.config.recovery_timeout
        ):
            self._transition_to(CircuitState.HALF_OPEN)
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def _transition_to(self, new_state: CircuitState):
        old_state = self._state
        self._state = new_state
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._opened_at = None

        logger.info(
            "circuit_breaker_state_changed",
            breaker=self.name,
            old_state=old_state.value,
            new_state=new_state.value
        )

    def _record_success(self):
        self._failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition_to(CircuitState.CLOSED)

    def _record_failure(self, exception: Exception):
        self._failed_calls += 1
        error_counter.labels(
            error_type=type(exception).__name__,
            operation=f"circuit_breaker_{self.name}"
        ).inc()

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            return

        self._failure_count += 1
        if self._failure_count >= self.config.failure_threshold:
            logger.warning(
                "circuit_breaker_opened",
                breaker=self.name,
                failures=self._failure_count
            )
            self._transition_to(CircuitState.OPEN)

    async def call_async(self, func: Callable, *args, **kwargs):
        """
        Await func(*args, **kwargs) under circuit breaker protection.

        Raises:
            CircuitBreakerError: If the circuit is open
            Exception: Whatever func raises (asyncio.TimeoutError on timeout)
        """
        if self.state == CircuitState.OPEN:
            self._rejected_calls += 1
            raise CircuitBreakerError(
                f"Circuit breaker '{self.name}' is OPEN. Service is unavailable."
            )

        self._total_calls += 1
        try:
            if self.config.timeout:
                result = await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=self.config.timeout
                )
            else:
                result = await func(*args, **kwargs)
        except Exception as e:
            self._record_failure(e)
            raise

        self._record_success()
        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get circuit breaker statistics"""
        return {
            "name": self.name,
            "state": self.state.value,
            "total_calls": self._total_calls,
            "failed_calls": self._failed_calls,
            "rejected_calls": self._rejected_calls,
            "consecutive_failures": self._failure_count,
        }

    def reset(self):
        """Manually close the circuit"""
        self._transition_to(CircuitState.CLOSED)


def create_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 30.0,
    timeout: Optional[float] = None
) -> CircuitBreaker:
    """Create a circuit breaker with the given thresholds"""
    return CircuitBreaker(
        name=name,
        config=CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            timeout=timeout
        )
    )
