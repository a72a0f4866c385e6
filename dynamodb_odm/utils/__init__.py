from .timezone import TimezoneManager, resolve_zone

__all__ = [
    "TimezoneManager",
    "resolve_zone",
]
