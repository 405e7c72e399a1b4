import hashlib
import hmac
from typing import Any, Protocol

from ..exceptions import ConfigurationError


class CryptoProvider(Protocol):
    def hmac_sha256(self, key: bytes, message: bytes) -> bytes:
        ...

    def constant_time_equal(self, left: bytes, right: bytes) -> bool:
        ...


class StdlibCryptoProvider:
    def hmac_sha256(self, key: bytes, message: bytes) -> bytes:
        return hmac.new(key, message, hashlib.sha256).digest()

    def constant_time_equal(self, left: bytes, right: bytes) -> bool:
        return hmac.compare_digest(left, right)


def ensure_crypto_provider(provider: Any) -> CryptoProvider:
    for name in ("hmac_sha256", "constant_time_equal"):
        if not callable(getattr(provider, name, None)):
            raise ConfigurationError(f"crypto provider is missing required primitive: {name}")
    return provider
