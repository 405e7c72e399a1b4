import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class WalletGateSettings:
    api_key: str
    base_url: Optional[str] = None
    webhook_secret: Optional[str] = None


def load_settings() -> WalletGateSettings:
    values = _load_env_values()
    api_key = values.get("WALLETGATE_API_KEY")
    if not api_key:
        raise RuntimeError("missing WALLETGATE_API_KEY in environment or .env")
    return WalletGateSettings(
        api_key=api_key,
        base_url=values.get("WALLETGATE_BASE_URL"),
        webhook_secret=values.get("WALLETGATE_WEBHOOK_SECRET"),
    )


def _load_env_values() -> Dict[str, str]:
    values: Dict[str, str] = dict(os.environ)
    for candidate in _candidate_env_files():
        if not candidate.exists():
            continue
        for line in candidate.read_text(encoding="utf-8").splitlines():
            parsed = _parse_line(line)
            if parsed is None:
                continue
            key, value = parsed
            values.setdefault(key, value)
        break
    return values


def _candidate_env_files() -> List[Path]:
    cwd = Path.cwd()
    script_dir = Path(__file__).resolve().parent
    return [cwd / ".env", script_dir.parent / ".env"]


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    key, value = stripped.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")
