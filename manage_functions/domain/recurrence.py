# /manage_functions/domain/recurrence.py
from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.rrule import rrule, rruleset, rrulestr
from dateutil.tz import tzical

from manage_functions.domain.errors import MalformedRecurrence, UnsupportedTimeZone

LOG = logging.getLogger("domain.recurrence")

DEFAULT_ZONE = "UTC"
DEFAULT_HORIZON_YEARS = 100
DEFAULT_MAX_STEPS = 100_000

_DATE_TIME = re.compile(r"(\d{8})T(\d{6})(Z?)")
_DATE = re.compile(r"\d{8}")
# keeps every aware value comparable after conversion into any zone
_MAX_HORIZON = datetime(9999, 12, 30, tzinfo=timezone.utc)

# frequencies whose period has a fixed wall-clock length
_PERIODS = {
    "SECONDLY": timedelta(seconds=1),
    "MINUTELY": timedelta(minutes=1),
    "HOURLY": timedelta(hours=1),
    "DAILY": timedelta(days=1),
    "WEEKLY": timedelta(weeks=1),
}
_MONTH_DAYS = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

RuleParts = tuple[tuple[str, str], ...]


# ==== Model ====


@dataclass(frozen=True, slots=True)
class ContentLine:
    name: str
    params: dict[str, str]
    value: str


@dataclass(frozen=True, slots=True)
class RecurrencePattern:
    """A parsed schedule; every datetime is aware and expressed in ``zone``."""

    start: datetime
    zone: ZoneInfo
    rules: tuple[RuleParts, ...] = ()
    exrules: tuple[RuleParts, ...] = ()
    rdates: tuple[datetime, ...] = ()
    exdates: tuple[datetime, ...] = ()

    @property
    def one_shot(self) -> bool:
        return not self.rules and not self.rdates


# ==== Public API ====


def load_zone(name: str | None) -> ZoneInfo:
    name = (name or "").strip() or DEFAULT_ZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise UnsupportedTimeZone(f"unknown time zone: {name!r}") from e


def parse_recurrence(text: str, zone_name: str | None = None) -> RecurrencePattern:
    """Parse the first VEVENT of ``text`` (or bare content lines) in a zone.

    DTSTART is required. Floating and date-only values are wall-clock times in
    the zone; UTC and TZID values are converted into it, so rules expand in
    local time and follow daylight-saving changes. A TZID refers to a
    VTIMEZONE of the same calendar when one defines it, and to the zone
    database otherwise. Without RRULE or RDATE the pattern fires once, at
    DTSTART.
    """
    zone = load_zone(zone_name)
    raw_lines = _unfold(text)
    zones = _calendar_zones(raw_lines)
    lines = _event_lines(raw_lines)

    starts = [line for line in lines if line.name == "DTSTART"]
    if not starts:
        raise MalformedRecurrence("recurrence has no DTSTART")
    start = _parse_datetime(starts[0].value, starts[0].params, zone, zones)

    rules: list[RuleParts] = []
    exrules: list[RuleParts] = []
    rdates: list[datetime] = []
    exdates: list[datetime] = []
    for line in lines:
        if line.name in ("RRULE", "EXRULE"):
            parts = _parse_rule_parts(line.value, zone)
            _build_rule(parts, start)  # validate now, expand later
            (rules if line.name == "RRULE" else exrules).append(parts)
        elif line.name == "RDATE":
            rdates.extend(_parse_date_list(line, zone, zones))
        elif line.name == "EXDATE":
            exdates.extend(_parse_date_list(line, zone, zones))

    pattern = RecurrencePattern(
        start=start,
        zone=zone,
        rules=tuple(rules),
        exrules=tuple(exrules),
        rdates=tuple(rdates),
        exdates=tuple(exdates),
    )
    LOG.debug(
        "recurrence.parsed",
        extra={"extra": {"zone": zone.key, "rules": len(rules), "one_shot": pattern.one_shot}},
    )
    return pattern


def next_occurrence(
    pattern: RecurrencePattern,
    reference_time: datetime | int | float,
    offset_index: int = 0,
    *,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> int | None:
    """Epoch seconds of occurrence ``offset_index`` at or after the reference.

    Index 0 is the first occurrence whose instant is not before
    ``reference_time``. Returns None when the schedule ends first, nothing
    happens within ``horizon_years`` of the reference, or ``max_steps``
    occurrences were produced without reaching the requested one.
    """
    if offset_index < 0:
        raise ValueError(f"offset index must be non-negative, got {offset_index}")

    reference = _as_utc(reference_time)
    try:
        horizon = min(reference + timedelta(days=366 * horizon_years), _MAX_HORIZON)
    except OverflowError:
        horizon = _MAX_HORIZON
    limit = int(horizon.timestamp())
    wanted = reference.timestamp()

    remaining = offset_index
    steps = 0
    try:
        for occurrence in _rule_set(pattern, reference, horizon):
            stamp = int(occurrence.timestamp())
            if stamp > limit:
                break
            steps += 1
            if steps > max_steps:
                LOG.warning(
                    "recurrence.step_budget_exhausted",
                    extra={"extra": {"offset": offset_index, "max_steps": max_steps}},
                )
                return None
            if stamp < wanted:
                continue
            if remaining == 0:
                return stamp
            remaining -= 1
    except (ValueError, OverflowError) as e:
        raise MalformedRecurrence(f"recurrence cannot be expanded: {e}") from e

    LOG.debug("recurrence.no_occurrence", extra={"extra": {"offset": offset_index}})
    return None


# ==== iCalendar text ====


def _unfold(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw.strip():
            lines.append(raw.strip())
    return lines


def _parse_line(line: str) -> ContentLine:
    in_quotes = False
    for pos, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            break
    else:
        raise MalformedRecurrence(f"invalid content line: {line!r}")

    name, *raw_params = line[:pos].split(";")
    params: dict[str, str] = {}
    for raw in raw_params:
        key, sep, value = raw.partition("=")
        if not sep:
            raise MalformedRecurrence(f"invalid parameter in line: {line!r}")
        params[key.strip().upper()] = value.strip().strip('"')
    return ContentLine(name.strip().upper(), params, line[pos + 1 :].strip())


def _event_lines(raw_lines: list[str]) -> list[ContentLine]:
    lines = [_parse_line(raw) for raw in raw_lines]
    if not any(line.name == "BEGIN" for line in lines):
        return lines

    event: list[ContentLine] = []
    depth = 0
    for line in lines:
        if line.name == "BEGIN":
            if depth or line.value.upper() == "VEVENT":
                depth += 1
            continue
        if line.name == "END":
            if depth:
                depth -= 1
                if depth == 0:
                    return event
            continue
        if depth == 1:  # skip nested components such as VALARM
            event.append(line)

    if depth:
        raise MalformedRecurrence("unterminated VEVENT component")
    raise MalformedRecurrence("recurrence has no VEVENT component")


def _calendar_zones(raw_lines: list[str]) -> dict[str, tzinfo]:
    """Zones defined by the calendar's VTIMEZONE components, by TZID."""
    block: list[str] = []
    inside = False
    for raw in raw_lines:
        marker = raw.replace(" ", "").upper()
        if marker == "BEGIN:VTIMEZONE":
            inside = True
        if inside and not marker.startswith("X-"):
            block.append(raw)
        if marker == "END:VTIMEZONE":
            inside = False
    if not block:
        return {}

    try:
        defined = tzical(io.StringIO("\n".join(block)))
    except (ValueError, KeyError, IndexError) as e:
        raise MalformedRecurrence(f"invalid VTIMEZONE component: {e}") from e
    return {tzid: defined.get(tzid) for tzid in defined.keys()}


def _parse_datetime(
    value: str,
    params: dict[str, str],
    zone: ZoneInfo,
    zones: dict[str, tzinfo] | None = None,
) -> datetime:
    value = value.strip().upper()
    tzid = params.get("TZID")
    source: tzinfo | None = None
    if tzid:
        source = (zones or {}).get(tzid) or load_zone(tzid)
    match = _DATE_TIME.fullmatch(value)
    try:
        if match:
            naive = datetime.strptime(match[1] + match[2], "%Y%m%d%H%M%S")
            if match[3]:
                return naive.replace(tzinfo=timezone.utc).astimezone(zone)
            if source is not None:
                return naive.replace(tzinfo=source).astimezone(zone)
            return naive.replace(tzinfo=zone)
        if _DATE.fullmatch(value):
            return datetime.strptime(value, "%Y%m%d").replace(tzinfo=zone)
    except (ValueError, OverflowError) as e:
        raise MalformedRecurrence(f"invalid date-time value: {value!r}") from e
    raise MalformedRecurrence(f"invalid date-time value: {value!r}")


def _parse_date_list(
    line: ContentLine, zone: ZoneInfo, zones: dict[str, tzinfo] | None = None
) -> list[datetime]:
    out: list[datetime] = []
    for item in line.value.split(","):
        item = item.strip()
        if item:
            # PERIOD values contribute their start
            out.append(_parse_datetime(item.split("/", 1)[0], line.params, zone, zones))
    return out


# ==== rules ====


def _parse_rule_parts(value: str, zone: ZoneInfo) -> RuleParts:
    parts: list[tuple[str, str]] = []
    for raw in value.split(";"):
        if not raw.strip():
            continue
        key, sep, val = raw.partition("=")
        key, val = key.strip().upper(), val.strip()
        if not sep or not key or not val:
            raise MalformedRecurrence(f"invalid recurrence rule: {value!r}")
        if key == "UNTIL":
            val = _until_utc(val, zone)
        elif key in ("INTERVAL", "COUNT"):
            _check_number(key, val, value)
        parts.append((key, val))
    if not any(key == "FREQ" for key, _ in parts):
        raise MalformedRecurrence(f"recurrence rule has no FREQ: {value!r}")
    return tuple(parts)


def _check_number(key: str, val: str, rule: str) -> None:
    # INTERVAL=0 never advances, a negative one walks backwards
    if not (val.isascii() and val.isdigit()) or (key == "INTERVAL" and int(val) < 1):
        raise MalformedRecurrence(f"invalid {key} in recurrence rule: {rule!r}")


def _until_utc(value: str, zone: ZoneInfo) -> str:
    """UNTIL as a UTC date-time; floating values are wall-clock in ``zone``."""
    value = value.upper()
    if value.endswith("Z"):
        return value
    if _DATE.fullmatch(value):
        day = _parse_datetime(value, {}, zone)
        until = datetime.combine(day.date(), time(23, 59, 59), tzinfo=zone)
    else:
        until = _parse_datetime(value, {}, zone)
    return _format_utc(until)


def _format_utc(value: datetime) -> str:
    v = value.astimezone(timezone.utc)
    return f"{v.year:04d}{v.month:02d}{v.day:02d}T{v.hour:02d}{v.minute:02d}{v.second:02d}Z"


def _build_rule(parts: RuleParts, start: datetime, horizon: datetime | None = None) -> rrule:
    # an open-ended rule gets the horizon as its UNTIL so expansion always ends
    if horizon is not None and not any(key == "COUNT" for key, _ in parts):
        limit = _format_utc(horizon)
        if any(key == "UNTIL" for key, _ in parts):
            parts = tuple((k, min(v, limit) if k == "UNTIL" else v) for k, v in parts)
        else:
            parts = parts + (("UNTIL", limit),)

    text = ";".join(f"{key}={val}" for key, val in parts)
    try:
        return rrulestr(text, dtstart=start)
    except ValueError as e:
        raise MalformedRecurrence(f"invalid recurrence rule {text!r}: {e}") from e


def _can_fire(parts: RuleParts) -> bool:
    """False when BYMONTH and BYMONTHDAY only name days like February 30."""
    values = dict(parts)
    if "BYMONTHDAY" not in values:
        return True
    try:
        days = [int(d) for d in values["BYMONTHDAY"].split(",")]
        if "BYMONTH" in values:
            months = [int(m) for m in values["BYMONTH"].split(",")]
        else:
            months = list(range(1, 13))
    except ValueError:
        return True
    return any(
        1 <= month <= 12 and 0 < abs(day) <= _MONTH_DAYS[month - 1]
        for month in months
        for day in days
    )


def _fast_forward(parts: RuleParts, start: datetime, reference: datetime) -> datetime:
    """Move ``start`` on by whole rule periods, staying at least one period
    before ``reference``.

    Only fixed-length frequencies without COUNT move, so the occurrences from
    the moved start on are exactly those of the original rule.
    """
    values = dict(parts)
    period = _PERIODS.get(values["FREQ"].upper())
    if period is None or "COUNT" in values:
        return start

    step = period * int(values.get("INTERVAL", "1"))
    seconds = step.total_seconds()
    target = reference.timestamp() - seconds
    periods = int((target - start.timestamp()) // seconds)
    if periods <= 0:
        return start
    moved = start + step * periods
    overshoot = moved.timestamp() - target
    if overshoot > 0:  # wall-clock steps across a daylight-saving change
        periods -= math.ceil(overshoot / seconds)
        if periods <= 0:
            return start
        moved = start + step * periods
    return moved if moved.timestamp() <= reference.timestamp() else start


def _rule_set(pattern: RecurrencePattern, reference: datetime, horizon: datetime) -> rruleset:
    rules = rruleset()
    for parts in pattern.rules:
        if _can_fire(parts):
            start = _fast_forward(parts, pattern.start, reference)
            rules.rrule(_build_rule(parts, start, horizon))
    for parts in pattern.exrules:
        if _can_fire(parts):
            start = _fast_forward(parts, pattern.start, reference)
            rules.exrule(_build_rule(parts, start, horizon))
    for value in pattern.rdates:
        rules.rdate(value)
    for value in pattern.exdates:
        rules.exdate(value)
    if pattern.one_shot:
        rules.rdate(pattern.start)
    return rules


def _as_utc(value: datetime | int | float) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.fromtimestamp(value, tz=timezone.utc)
