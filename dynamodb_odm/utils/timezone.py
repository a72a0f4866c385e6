"""Timezone utilities for the DynamoDB ODM."""

from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


def resolve_zone(name: Optional[str]) -> tzinfo:
    """Resolve a zone name to a tzinfo.

    ``None`` and ``'UTC'`` map to ``timezone.utc``, ``'local'`` to the system
    zone, anything else is looked up as an IANA identifier.
    """
    if name is None or name.upper() == "UTC":
        return timezone.utc
    if name.lower() == "local":
        return datetime.now().astimezone().tzinfo
    return ZoneInfo(name)


class TimezoneManager:
    """Converts datetimes between the application zone and the storage zone."""

    def __init__(self, application_timezone: Optional[str] = None, storage_timezone: Optional[str] = None):
        """Initialize timezone manager.

        Args:
            application_timezone: Zone for values handed to the application and
                for naive datetimes supplied by it (defaults to UTC)
            storage_timezone: Zone used when datetimes are persisted as strings
                (defaults to UTC)
        """
        self.application_timezone = application_timezone or "UTC"
        self.storage_timezone = storage_timezone or "UTC"

    def get_timezone(self, tz_override: Optional[str] = None) -> tzinfo:
        """Get tzinfo for ``tz_override`` or the application zone."""
        return resolve_zone(tz_override or self.application_timezone)

    def now(self, tz_override: Optional[str] = None) -> datetime:
        """Get current datetime in the application (or overridden) zone."""
        return datetime.now(self.get_timezone(tz_override))

    def to_timezone(self, dt: datetime, target_tz: Optional[str] = None) -> datetime:
        """Convert datetime to ``target_tz``.

        Naive datetimes are assumed to be in the application zone.
        """
        if dt is None:
            return None

        return self.ensure_timezone(dt).astimezone(self.get_timezone(target_tz))

    def to_application(self, dt: datetime) -> datetime:
        return self.to_timezone(dt, self.application_timezone)

    def ensure_timezone(self, dt: datetime, assumed_tz: Optional[str] = None) -> datetime:
        """Ensure datetime has timezone information.

        Args:
            dt: Datetime to check
            assumed_tz: Timezone to assume if datetime is naive

        Returns:
            Timezone-aware datetime
        """
        if dt is None:
            return None

        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.get_timezone(assumed_tz))

        return dt

    def format_iso(self, dt: datetime, target_tz: Optional[str] = None) -> str:
        """Format datetime as ISO string in ``target_tz`` (application zone by default)."""
        if dt is None:
            return None

        return self.to_timezone(dt, target_tz).isoformat()

    def parse_iso(self, iso_string: str, target_tz: Optional[str] = None, assumed_tz: Optional[str] = None) -> datetime:
        """Parse ISO datetime string and convert to specified timezone.

        Args:
            iso_string: ISO formatted datetime string
            target_tz: Target timezone for result (application zone by default)
            assumed_tz: Zone applied when the string carries no offset

        Returns:
            Parsed datetime in target timezone

        Raises:
            ValueError: If the string is not a valid ISO-8601 datetime
        """
        if not iso_string:
            return None

        dt = datetime.fromisoformat(iso_string.strip().replace('Z', '+00:00'))
        dt = self.ensure_timezone(dt, assumed_tz)
        return dt.astimezone(self.get_timezone(target_tz))
