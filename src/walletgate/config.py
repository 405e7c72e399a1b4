from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .exceptions import ConfigurationError
from .retry import RetryPolicy
from .version import __version__

DEFAULT_BASE_URL = "https://api.walletgate.app"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class WalletGateConfig:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    on_rate_limit: Optional[Callable[[Any], Any]] = None
    user_agent: str = f"walletgate-python/{__version__}"

    def __post_init__(self) -> None:
        api_key = str(self.api_key or "").strip()
        if not api_key:
            raise ConfigurationError("api_key is required")
        object.__setattr__(self, "api_key", api_key)

        base_url = str(self.base_url or DEFAULT_BASE_URL).strip().rstrip("/")
        if not base_url:
            raise ConfigurationError("base_url must not be empty")
        object.__setattr__(self, "base_url", base_url)

        if isinstance(self.timeout_seconds, bool) or not isinstance(self.timeout_seconds, (int, float)):
            raise ConfigurationError("timeout_seconds must be a number")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be greater than 0")
        if not isinstance(self.retry_policy, RetryPolicy):
            raise ConfigurationError("retry_policy must be a RetryPolicy")
        if self.on_rate_limit is not None and not callable(self.on_rate_limit):
            raise ConfigurationError("on_rate_limit must be callable")

    def __repr__(self) -> str:
        return (
            f"WalletGateConfig(api_key='***', base_url={self.base_url!r}, "
            f"timeout_seconds={self.timeout_seconds!r}, retry_policy={self.retry_policy!r})"
        )
