"""
Fragment Builder Module
Renders the world clock comparison table as an HTML fragment.
"""

from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, datetime, timezone
from pathlib import Path
import calendar
from typing import List, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from babel import Locale, UnknownLocaleError
from babel.dates import format_datetime
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from core.cache_key import QueryMapping, QueryValue

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / 'templates'

DEFAULT_TIMEZONE = 'America/Denver'
DEFAULT_LOCALE = 'en-US'
DEFAULT_DATE_FIELDS = {
    'year': 2024,
    'month': 1,
    'day': 12,
    'hour': 16,
    'minute': 0,
}

# Every style renders the same table, only the stylesheet fonts differ
STYLES = ('normal', 'wingdings', 'aurebesh')

DATETIME_FORMAT = 'long'

@dataclass(frozen=True)
class TimezoneRow:
    name: str
    timezone: str
    locale: str = DEFAULT_LOCALE

@dataclass(frozen=True)
class RenderedRow:
    name: str
    text: str

BUILTIN_ROWS = (
    TimezoneRow('Ward Radio HQ', 'America/Los_Angeles', 'en-US'),
    TimezoneRow('US East Coasters', 'America/New_York', 'en-US'),
    TimezoneRow('Mormon Central Time (Utah)', 'America/Denver', 'en-US'),
    TimezoneRow('Sydney, AU', 'Australia/Sydney', 'en-AU'),
    TimezoneRow('UTC/Zulu/GMT', 'Etc/UTC', 'en-GB'),
)

def _scalar(value: Optional[QueryValue]) -> Optional[str]:
    """Reduce a repeated query value to its first occurrence."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value

def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))

def _load_zone(name: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None

def _load_locale(tag: str) -> Optional[Locale]:
    try:
        return Locale.parse(tag, sep='-')
    except (UnknownLocaleError, ValueError, TypeError):
        return None

def split_additional_timezones(value: Optional[QueryValue]) -> List[str]:
    """Accept either a comma-joined string or a sequence of zone names."""
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(',')
    return list(value)

def format_zoned(moment: datetime, locale: Locale) -> str:
    return format_datetime(moment, format=DATETIME_FORMAT, locale=locale)

def serialize_query(query: QueryMapping) -> str:
    """Re-encode a query mapping, repeating keys for sequence values."""
    return urlencode(
        [(key, value) for key, value in query.items()],
        doseq=True,
    )

class FragmentBuilder:
    """Builds the comparison table fragment and the embed page around it."""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html']),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.default_locale = Locale.parse(DEFAULT_LOCALE, sep='-')

    def resolve_timezone(self, query: QueryMapping) -> str:
        name = _scalar(query.get('tz'))
        if name is None:
            return DEFAULT_TIMEZONE
        if _load_zone(name) is None:
            logger.warning(f"Unknown timezone {name!r}, using {DEFAULT_TIMEZONE}")
            return DEFAULT_TIMEZONE
        return name

    def resolve_locale(self, query: QueryMapping) -> Locale:
        tag = _scalar(query.get('locale'))
        if tag is None:
            return self.default_locale
        locale = _load_locale(tag)
        if locale is None:
            logger.warning(f"Unknown locale {tag!r}, using {DEFAULT_LOCALE}")
            return self.default_locale
        return locale

    def resolve_date_field(self, query: QueryMapping, field: str) -> int:
        default = DEFAULT_DATE_FIELDS[field]
        raw = _scalar(query.get(field))
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            logger.warning(f"Invalid {field} value {raw!r}, using {default}")
            return default

    def resolve_target(self, query: QueryMapping, zone_name: str) -> datetime:
        """
        Build the main zoned datetime from the numeric query fields.

        Each field defaults on its own. Out-of-range fields are clamped to
        the nearest valid value (February 31 becomes the last day of
        February); only a year datetime can't represent falls back to the
        default moment. A wall time skipped by a DST transition moves
        forward by the length of the gap.
        """
        zone = ZoneInfo(zone_name)
        fields = {name: self.resolve_date_field(query, name) for name in DEFAULT_DATE_FIELDS}
        if not MINYEAR <= fields['year'] <= MAXYEAR:
            logger.warning(f"Year {fields['year']} out of range, using default date")
            fields = dict(DEFAULT_DATE_FIELDS)

        clamped = dict(fields)
        clamped['month'] = _clamp(fields['month'], 1, 12)
        clamped['day'] = _clamp(fields['day'], 1, calendar.monthrange(clamped['year'], clamped['month'])[1])
        clamped['hour'] = _clamp(fields['hour'], 0, 23)
        clamped['minute'] = _clamp(fields['minute'], 0, 59)
        if clamped != fields:
            logger.warning(f"Date fields {fields} out of range, clamped to {clamped}")

        target = datetime(tzinfo=zone, **clamped)
        try:
            # Round-trip through UTC to land on a wall time that exists
            return target.astimezone(timezone.utc).astimezone(zone)
        except OverflowError:
            logger.warning(f"Date {clamped} can't be converted to UTC, using default date")
            return datetime(tzinfo=zone, **DEFAULT_DATE_FIELDS)

    def resolve_rows(self, query: QueryMapping) -> List[TimezoneRow]:
        """Built-in rows followed by one row per valid additional timezone."""
        rows = list(BUILTIN_ROWS)
        for name in split_additional_timezones(query.get('additionalTimezones')):
            name = name.strip()
            if not name:
                continue
            if _load_zone(name) is None:
                logger.warning(f"Skipping unknown additional timezone {name!r}")
                continue
            rows.append(TimezoneRow(name, name))
        return rows

    def render_rows(self, query: QueryMapping) -> List[RenderedRow]:
        zone_name = self.resolve_timezone(query)
        target = self.resolve_target(query, zone_name)
        rows = self.resolve_rows(query)

        rendered = []
        if not any(row.timezone == zone_name for row in rows):
            rendered.append(RenderedRow(zone_name, format_zoned(target, self.resolve_locale(query))))

        for row in rows:
            if row.timezone == zone_name:
                moment = target
            else:
                moment = target.astimezone(ZoneInfo(row.timezone))
            rendered.append(RenderedRow(row.name, format_zoned(moment, _load_locale(row.locale))))
        return rendered

    def build(self, query: QueryMapping, now: datetime) -> str:
        """
        Render the fragment for a query at a given server time.

        Args:
            query: Request query parameters
            now: Current server time; naive values are treated as UTC

        Returns:
            HTML fragment with one table per display style
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        rows = self.render_rows(query)
        template = self.env.get_template('fragment.html')
        return template.render(
            styles=STYLES,
            rows=rows,
            server_time=format_zoned(now, self.default_locale),
        )

    def build_page(self, query: QueryMapping, now: datetime, asset_base: str = '') -> str:
        """
        Embed the fragment in the full embed document.

        Args:
            query: Request query parameters
            now: Current server time
            asset_base: Absolute base URL for stylesheet and fonts, or empty
                to keep them relative to the current page
        """
        template = self.env.get_template('embed.html')
        return template.render(
            content=Markup(self.build(query, now)),
            asset_base=asset_base,
            query_string=serialize_query(query),
        )

_default_builder: Optional[FragmentBuilder] = None

def build_fragment(query: QueryMapping, now: datetime) -> str:
    """Render the fragment with a shared builder instance."""
    global _default_builder
    if _default_builder is None:
        _default_builder = FragmentBuilder()
    return _default_builder.build(query, now)
