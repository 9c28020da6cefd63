"""Locale-aware date formatting for REST API timestamps.

The locale cache is an explicit object owned by a :class:`DateFormatter`
instance rather than module state, so two formatters (or two tests) never
observe each other's loaded locales.

Example:
    >>> formatter = DateFormatter(locale="en")
    >>> formatter.format_date("2025-04-16T10:00:00")
    '2025-04-16 10:00:00'
    >>> formatter.relative_time("2025-04-16T09:00:00", now=datetime(2025, 4, 16, 10))
    'an hour ago'
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from repo_scout.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

DEFAULT_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class LocaleData:
    """Relative-time phrases for one locale.

    ``past`` and ``future`` wrap a duration phrase; the plural entries take
    the count through ``%d``.
    """

    name: str
    past: str
    future: str
    seconds: str
    minute: str
    minutes: str
    hour: str
    hours: str
    day: str
    days: str
    month: str
    months: str
    year: str
    years: str


_LOCALES: dict[str, LocaleData] = {
    "en": LocaleData(
        name="en",
        past="%s ago",
        future="in %s",
        seconds="a few seconds",
        minute="a minute",
        minutes="%d minutes",
        hour="an hour",
        hours="%d hours",
        day="a day",
        days="%d days",
        month="a month",
        months="%d months",
        year="a year",
        years="%d years",
    ),
    "zh-cn": LocaleData(
        name="zh-cn",
        past="%s前",
        future="%s后",
        seconds="几秒",
        minute="1 分钟",
        minutes="%d 分钟",
        hour="1 小时",
        hours="%d 小时",
        day="1 天",
        days="%d 天",
        month="1 个月",
        months="%d 个月",
        year="1 年",
        years="%d 年",
    ),
}


class LocaleCache:
    """Loaded locale data, populated lazily once per normalized locale name.

    Loading the same locale twice is harmless, so concurrent callers need no
    lock.
    """

    def __init__(self) -> None:
        self._loaded: dict[str, LocaleData] = {}

    def load(self, locale: str) -> LocaleData:
        """Return locale data, loading it on first use.

        Raises:
            ConfigurationError: If the locale is not supported
        """
        key = str(locale).lower()
        data = self._loaded.get(key)
        if data is not None:
            return data

        data = _LOCALES.get(key)
        if data is None:
            raise ConfigurationError(f"Unsupported locale: {locale} (supported: {', '.join(sorted(_LOCALES))})")

        self._loaded[key] = data
        log.debug("locale_loaded", locale=key)
        return data

    def __contains__(self, locale: object) -> bool:
        return str(locale).lower() in self._loaded

    def __len__(self) -> int:
        return len(self._loaded)

    def clear(self) -> None:
        """Drop every loaded locale."""
        self._loaded.clear()


def _to_datetime(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.strip().replace(" ", "T", 1))


class DateFormatter:
    """Formats timestamps for display.

    Args:
        cache: Locale cache to use; a fresh one is created when omitted
        locale: Default locale for calls that don't pass one
    """

    def __init__(self, cache: LocaleCache | None = None, locale: str = "zh-cn") -> None:
        self.cache = cache if cache is not None else LocaleCache()
        self.locale = locale

    def format_date(self, value: str | datetime, locale: str | None = None, fmt: str = DEFAULT_FORMAT) -> str:
        """Format a timestamp with a strftime pattern.

        The pattern is numeric, so the output is identical for every locale;
        ``locale`` is only validated (and loaded into the cache) so that a
        bad name fails here rather than on a later :meth:`relative_time`.
        Timezone-aware values are shown in local time.

        Raises:
            ConfigurationError: If the locale is not supported
        """
        self.cache.load(locale or self.locale)
        date = _to_datetime(value)
        if date.tzinfo is not None:
            date = date.astimezone()
        return date.strftime(fmt)

    def relative_time(
        self,
        value: str | datetime,
        locale: str | None = None,
        absolute_if_over_30_days: bool = False,
        now: datetime | None = None,
    ) -> str:
        """Describe a timestamp relative to ``now`` ("3 hours ago").

        With ``absolute_if_over_30_days`` a date more than 30 days in the
        past is rendered with :meth:`format_date` instead.
        """
        data = self.cache.load(locale or self.locale)
        date = _to_datetime(value)
        if now is None:
            now = datetime.now(UTC) if date.tzinfo is not None else datetime.now()
        elif (now.tzinfo is None) != (date.tzinfo is None):
            now = now.replace(tzinfo=date.tzinfo)

        delta = (now - date).total_seconds()
        if absolute_if_over_30_days and delta > 30 * 86400:
            return self.format_date(date, locale)

        phrase = _duration_phrase(abs(delta), data)
        template = data.past if delta >= 0 else data.future
        return template % phrase


def _duration_phrase(seconds: float, data: LocaleData) -> str:
    # Thresholds follow the usual "humanized" rounding: 45s, 90s, 45m, 90m, 22h, 36h, 26d, 46d, 11mo, 18mo.
    minutes = round(seconds / 60)
    hours = round(seconds / 3600)
    days = round(seconds / 86400)
    months = round(seconds / (86400 * 30.4375))
    years = round(seconds / (86400 * 365.25))

    if seconds < 45:
        return data.seconds
    if seconds < 90:
        return data.minute
    if minutes < 45:
        return data.minutes % minutes
    if minutes < 90:
        return data.hour
    if hours < 22:
        return data.hours % hours
    if hours < 36:
        return data.day
    if days < 26:
        return data.days % days
    if days < 46:
        return data.month
    if months < 11:
        return data.months % months
    if months < 18:
        return data.year
    return data.years % max(years, 2)
