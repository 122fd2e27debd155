import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

PLACEHOLDER_API_KEY = "your_api_key_here"


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ''):
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: Optional[str] = None
    route_lookup_timeout_s: float = 10.0
    maps_max_workers: int = 10
    log_file: Optional[str] = None
    host: str = '0.0.0.0'
    port: int = 5001

    @property
    def maps_configured(self) -> bool:
        return bool(self.google_maps_api_key) and self.google_maps_api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'Settings':
        """Settings from the environment, after loading .env if present"""
        load_dotenv(dotenv_path=dotenv_path)
        return cls(
            google_maps_api_key=os.getenv('GOOGLE_MAPS_API_KEY'),
            route_lookup_timeout_s=_float_env('ROUTE_LOOKUP_TIMEOUT_S', 10.0),
            maps_max_workers=int(_float_env('MAPS_MAX_WORKERS', 10)),
            log_file=os.getenv('LOG_FILE') or None,
            host=os.getenv('HOST', '0.0.0.0'),
            port=int(_float_env('PORT', 5001)),
        )
