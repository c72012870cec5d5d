import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

SOLCAST_BASE_URL = "https://api.solcast.com.au"


@dataclass(frozen=True)
class SolcastConfig:
    api_key: Optional[str] = None
    base_url: str = SOLCAST_BASE_URL
    capacity_kw: float = 5.0  # installed-capacity assumption sent to the provider
    timeout_s: float = 15.0
    retries: int = 0
    retry_jitter_s: float = 0.5

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


def config_from_env(prefix: str = "SOLCAST_") -> SolcastConfig:
    """Build a SolcastConfig from the environment (and a .env file if present).

    Meant for callers such as the demo driver; the engine only ever receives
    the resulting value.
    """
    load_dotenv()
    return SolcastConfig(
        api_key=os.getenv(f"{prefix}API_KEY"),
        base_url=os.getenv(f"{prefix}BASE_URL", SOLCAST_BASE_URL),
        capacity_kw=float(os.getenv(f"{prefix}CAPACITY_KW", "5.0")),
        timeout_s=float(os.getenv(f"{prefix}TIMEOUT_S", "15.0")),
    )
