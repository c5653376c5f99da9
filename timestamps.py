"""Resolve user-supplied since/until values into API timestamps.

The logs endpoint accepts either unix seconds or ``seconds.nanoseconds``.
Callers may instead pass a relative duration ("10m", "1h30m") or an
RFC3339-like date, which is resolved against a reference time here.
"""

import re
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

# longer unit names first so "ms" wins over "m"
_UNIT = r"(?:ns|us|µs|μs|ms|s|m|h)"
_DURATION_RX = re.compile(rf"^[-+]?(?:(?:\d+\.?\d*|\.\d+){_UNIT})+$")
_DURATION_PART_RX = re.compile(rf"(\d+\.?\d*|\.\d+)({_UNIT})")

_DATE_RX = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})"
    r"(?:T(\d{2})(?::(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?)?)?"
    r"(Z|z|[+-]\d{2}:\d{2})?$"
)

_UNIX_RX = re.compile(r"^\d+(?:\.\d+)?$")


def parse_duration(value: str) -> int:
    """Parse a Go-style duration string into nanoseconds.

    Raises:
        ValueError: if value is not a duration
    """
    if not _DURATION_RX.match(value):
        raise ValueError(f"invalid duration: {value!r}")

    sign = -1 if value.startswith("-") else 1
    total = 0
    for number, unit in _DURATION_PART_RX.findall(value.lstrip("+-")):
        whole, _, frac = number.partition(".")
        scale = _NS_PER_UNIT[unit]
        total += int(whole or "0") * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
    return sign * total


def _unix_ns(moment: datetime) -> int:
    delta = moment - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def _parse_zone(zone: str, reference: datetime) -> timezone:
    if not zone:
        # naive dates use the reference's fixed offset
        return timezone(reference.utcoffset() or timedelta(0))
    if zone in ("Z", "z"):
        return timezone.utc
    sign = -1 if zone[0] == "-" else 1
    hours, minutes = zone[1:].split(":")
    return timezone(sign * timedelta(hours=int(hours), minutes=int(minutes)))


def _parse_date(match: "re.Match[str]", reference: datetime) -> str:
    year, month, day, hour, minute, second, fraction, zone = match.groups()

    tz = _parse_zone(zone or "", reference)

    moment = datetime(
        int(year),
        int(month),
        int(day),
        int(hour or 0),
        int(minute or 0),
        int(second or 0),
        tzinfo=tz,
    )
    nanos = int((fraction or "").ljust(9, "0"))
    seconds = _unix_ns(moment) // 1_000_000_000
    return "%d.%09d" % (seconds, nanos)


def get_timestamp(value: str, reference: datetime) -> str:
    """Convert a since/until value into a timestamp string for the API.

    Args:
        value: Duration ("10m"), date ("2024-01-02T15:04:05Z") or unix
            timestamp ("1700000000.5")
        reference: The "now" that durations are subtracted from; also
            supplies the zone for dates written without one

    Returns:
        str: unix seconds for durations, "seconds.nanoseconds" for dates,
        or the value unchanged when it is already a unix timestamp

    Raises:
        ValueError: if the value cannot be parsed
    """
    if reference.tzinfo is None:
        reference = reference.astimezone()

    if value != "0":
        try:
            duration = parse_duration(value)
        except ValueError:
            pass
        else:
            return str((_unix_ns(reference) - duration) // 1_000_000_000)

    match = _DATE_RX.match(value)
    if match is not None:
        try:
            return _parse_date(match, reference)
        except ValueError as e:
            raise ValueError(f"parsing time {value!r}: {e}") from e

    if "-" in value:
        # looked like a date but did not parse as one
        raise ValueError(f"parsing time {value!r}: not an RFC3339 timestamp")

    if not _UNIX_RX.match(value):
        raise ValueError(f"failed to parse value as time or duration: {value!r}")
    return value
