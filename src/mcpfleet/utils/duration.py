# ABOUTME: Duration value type used by every timeout and interval option
# ABOUTME: Parses Go-style strings (1h30m, 500ms) and renders human and canonical forms
import re
from dataclasses import dataclass
from datetime import timedelta

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

# ABOUTME: Unit suffixes accepted by Duration.parse (micro accepts 'us', U+00B5 and U+03BC)
UNITS: dict[str, int] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,
    "μs": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}

# Largest first; used for the human rendering.
_HUMAN_UNITS = (
    (HOUR, "h"),
    (MINUTE, "m"),
    (SECOND, "s"),
    (MILLISECOND, "ms"),
    (MICROSECOND, "µs"),
)

_COMPONENT_PATTERN = re.compile(r"(\d*)(?:\.(\d*))?([a-zA-Zµμ]+)", re.ASCII)


@dataclass(frozen=True, order=True)
class Duration:
    """A signed span of time with nanosecond precision.

    ABOUTME: str() gives the compact human form (largest unit dividing exactly)
    ABOUTME: canonical() gives the multi-unit form written to the config file

    Examples:
        >>> Duration.parse("1h30m").canonical()
        '1h30m0s'
        >>> str(Duration.parse("90s"))
        '90s'
        >>> str(Duration(0))
        '0h'
    """
    nanoseconds: int

    @classmethod
    def parse(cls, text: str) -> "Duration":
        """Parse a duration string such as '30s', '1h30m45s', '1.5h' or '-5m'.

        Raises:
            ValueError: If the text is not a valid duration
        """
        original = text
        if not text:
            raise ValueError("invalid duration: empty string")

        sign = 1
        if text[0] in "+-":
            if text[0] == "-":
                sign = -1
            text = text[1:]

        # A lone zero needs no unit.
        if text == "0":
            return cls(0)
        if not text:
            raise ValueError(f"invalid duration '{original}'")

        total = 0
        pos = 0
        while pos < len(text):
            match = _COMPONENT_PATTERN.match(text, pos)
            if match is None:
                raise ValueError(f"invalid duration '{original}'")

            whole, fraction, unit = match.groups()
            if not whole and not fraction:
                raise ValueError(f"invalid duration '{original}'")
            if unit not in UNITS:
                raise ValueError(f"unknown unit '{unit}' in duration '{original}'")

            scale = UNITS[unit]
            total += int(whole or "0") * scale
            if fraction:
                total += int(fraction) * scale // (10 ** len(fraction))
            pos = match.end()

        return cls(sign * total)

    @classmethod
    def from_timedelta(cls, value: timedelta) -> "Duration":
        return cls(
            (value.days * 86400 + value.seconds) * SECOND + value.microseconds * MICROSECOND
        )

    def to_timedelta(self) -> timedelta:
        return timedelta(microseconds=self.nanoseconds // MICROSECOND)

    def total_seconds(self) -> float:
        return self.nanoseconds / SECOND

    def is_positive(self) -> bool:
        return self.nanoseconds > 0

    def canonical(self) -> str:
        """Render in the multi-unit form used for serialization, e.g. '5m0s'."""
        if self.nanoseconds == 0:
            return "0s"

        value = abs(self.nanoseconds)
        if value < MICROSECOND:
            text = f"{value}ns"
        elif value < MILLISECOND:
            text = _with_fraction(value, 3) + "µs"
        elif value < SECOND:
            text = _with_fraction(value, 6) + "ms"
        else:
            hours, rest = divmod(value, HOUR)
            minutes, rest = divmod(rest, MINUTE)
            text = _with_fraction(rest, 9) + "s"
            if hours or minutes:
                text = f"{minutes}m{text}"
            if hours:
                text = f"{hours}h{text}"

        return f"-{text}" if self.nanoseconds < 0 else text

    def __str__(self) -> str:
        # Zero divides by every unit, so it renders as '0h'.
        for unit, suffix in _HUMAN_UNITS:
            if self.nanoseconds % unit == 0:
                return f"{self.nanoseconds // unit}{suffix}"
        return f"{self.nanoseconds}ns"


def _with_fraction(value: int, precision: int) -> str:
    """Format value / 10**precision, dropping trailing zeros from the fraction."""
    whole, fraction = divmod(value, 10 ** precision)
    if fraction == 0:
        return str(whole)
    digits = str(fraction).rjust(precision, "0").rstrip("0")
    return f"{whole}.{digits}"
