import random
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient request failures.

    ``get_delay_seconds(k)`` is ``base_delay_seconds * factor ** k`` for the
    zero-based retry ``k``; with ``jitter`` a uniform extra in
    ``[0, delay / 2)`` is added.
    """

    max_retries: int = 0
    base_delay_seconds: float = 0.2
    factor: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ConfigurationError("max_retries must be an integer")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        if self.base_delay_seconds <= 0:
            raise ConfigurationError("base_delay_seconds must be greater than 0")
        if self.factor < 1:
            raise ConfigurationError("factor must be >= 1")

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries

    def base_delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * (self.factor ** attempt)

    def get_delay_seconds(self, attempt: int, *, rand: Optional[Callable[[], float]] = None) -> float:
        delay = self.base_delay_for(attempt)
        if not self.jitter:
            return delay
        sample = (rand or random.random)()
        return delay + sample * (delay / 2)
