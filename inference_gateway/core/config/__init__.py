from .constants import CacheStatus, CircuitState, Stage, TargetRole
from .settings import Settings, get_settings, reload_settings

__all__ = [
    "CacheStatus",
    "CircuitState",
    "Settings",
    "Stage",
    "TargetRole",
    "get_settings",
    "reload_settings",
]
