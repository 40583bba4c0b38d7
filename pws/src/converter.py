"""
Pure unit converter that augments a ReadingSet with metric fields.

Weather stations upload imperial units (F, mph, in, inHg). ``convert`` adds
the Celsius, km/h, knots, millimetre and hPa equivalents next to the
originals, and expands the ``dateutc=now`` shorthand into a real UTC
timestamp.

Every rule reads one original field and writes one new field, so rules are
independent of each other and of evaluation order.  A rule whose input is
missing or not a finite number is skipped: the output field is simply absent.

Arithmetic is done in ``Decimal`` so that rounding to two places is
half-away-from-zero on the exact value, not on a binary float approximation
(``10 mph -> 16.09 km/h``, ``0.125 in -> 3.18 mm``).

Rules are evaluated with enough precision to round very large readings
exactly.  A reading too large to round at all is treated like a non-numeric
one and its derived field is omitted.

This is a pure function: no I/O, no shared state.  The clock used for
``dateutc=now`` can be injected by the caller.

CHANGELOG:
- 2026-10-19: Reject underscore digit separators; omit out-of-range results
- 2026-10-19: Render negative zero as "0.00"
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation, localcontext

from pws.src.models import ReadingSet, Value

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Conversion factors
# ---------------------------------------------------------------------------

MPH_TO_KMH = Decimal("1.60934")
MPH_TO_KTS = Decimal("0.868976")
IN_TO_MM = Decimal("25.4")
INHG_TO_HPA = Decimal("33.86")

DATE_FIELD = "dateutc"
DATE_NOW = "now"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Significant digits kept while converting and rounding.
ARITHMETIC_PRECISION = 64

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _fahrenheit_to_celsius(value: Decimal) -> Decimal:
    return (value - 32) * 5 / 9


def _scale(factor: Decimal) -> Callable[[Decimal], Decimal]:
    def _apply(value: Decimal) -> Decimal:
        return value * factor

    return _apply


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConversionRule:
    """One derived field.

    Attributes:
        output_field: Name of the field added to the ReadingSet.
        input_field: Name of the original field the rule reads.
        formula: Function from the parsed input to the unrounded output.
        decimal_places: Places the output is rounded to.
    """

    output_field: str
    input_field: str
    formula: Callable[[Decimal], Decimal]
    decimal_places: int = 2


CONVERSION_RULES: tuple[ConversionRule, ...] = (
    # Temperatures
    ConversionRule("windchillc", "windchillf", _fahrenheit_to_celsius),
    ConversionRule("indoortempc", "indoortempf", _fahrenheit_to_celsius),
    ConversionRule("tempc", "tempf", _fahrenheit_to_celsius),
    ConversionRule("dewptc", "dewptf", _fahrenheit_to_celsius),
    # Speeds
    ConversionRule("windgustkmh", "windgustmph", _scale(MPH_TO_KMH)),
    ConversionRule("windspeedkmh", "windspeedmph", _scale(MPH_TO_KMH)),
    ConversionRule("windgustkts", "windgustmph", _scale(MPH_TO_KTS)),
    ConversionRule("windspeedkts", "windspeedmph", _scale(MPH_TO_KTS)),
    # Precipitation
    ConversionRule("rainmm", "rainin", _scale(IN_TO_MM)),
    ConversionRule("dailyrainmm", "dailyrainin", _scale(IN_TO_MM)),
    ConversionRule("weeklyrainmm", "weeklyrainin", _scale(IN_TO_MM)),
    ConversionRule("monthlyrainmm", "monthlyrainin", _scale(IN_TO_MM)),
    ConversionRule("yearlyrainmm", "yearlyrainin", _scale(IN_TO_MM)),
    # Pressures
    ConversionRule("baromhpa", "baromin", _scale(INHG_TO_HPA)),
    ConversionRule("absbaromhpa", "absbaromin", _scale(INHG_TO_HPA)),
)
"""All conversions, in the order their output fields are appended."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_number(value: Value | None) -> Decimal | None:
    """Parse a reading value as a finite decimal.

    Returns ``None`` for missing values, text that is not a plain decimal
    number (``1_0``, ``0x1A``, ``1,5``), and ``NaN``/``Infinity``.
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not _NUMBER_RE.fullmatch(text):
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def format_rounded(value: Decimal, places: int) -> str:
    """Round half-away-from-zero to *places* and render as fixed-point text."""
    quantum = Decimal(1).scaleb(-places)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        # Avoid "-0.00" for small negative inputs.
        rounded = abs(rounded)
    return f"{rounded:f}"


def apply_rule(rule: ConversionRule, readings: ReadingSet) -> str | None:
    """Evaluate a single rule, or return ``None`` if its input is unusable."""
    number = parse_number(readings.get(rule.input_field))
    if number is None:
        logger.debug(
            "Conversion '%s' skipped: input '%s' missing or not numeric",
            rule.output_field,
            rule.input_field,
        )
        return None
    try:
        with localcontext() as ctx:
            ctx.prec = ARITHMETIC_PRECISION
            return format_rounded(rule.formula(number), rule.decimal_places)
    except DecimalException as exc:
        logger.debug(
            "Conversion '%s' skipped: input '%s' out of range (%s)",
            rule.output_field,
            rule.input_field,
            type(exc).__name__,
        )
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def convert(readings: ReadingSet, *, now: datetime | None = None) -> ReadingSet:
    """Return *readings* augmented with derived metric fields.

    Original fields are kept unchanged, except that ``dateutc=now`` is
    replaced in place by the current UTC time (``YYYY-MM-DDTHH:MM:SSZ``).

    Args:
        readings: The uploaded reading set.
        now: Clock override for ``dateutc=now``.  Defaults to the current
            UTC time.

    Returns:
        A new :class:`ReadingSet`; *readings* is not modified.
    """
    derived: list[tuple[str, Value]] = []

    if readings.get(DATE_FIELD) == DATE_NOW:
        stamp = now if now is not None else datetime.now(tz=UTC)
        derived.append((DATE_FIELD, stamp.astimezone(UTC).strftime(DATE_FORMAT)))

    for rule in CONVERSION_RULES:
        value = apply_rule(rule, readings)
        if value is not None:
            derived.append((rule.output_field, value))

    return readings.with_fields(derived)
