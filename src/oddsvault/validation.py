from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from .errors import InvalidOddsError
from .logging_config import security_log

MIN_ODDS = Decimal("1.01")
MAX_ODDS = Decimal("999.99")

_XSS_PATTERNS = ("<script", "<iframe", "javascript:", "onerror=", "onload=", "onclick=")
_SQL_PATTERNS = ("--", ";", "' or ", "union select", "drop table", "insert into", "delete from")


def to_odds_decimal(name: str, value) -> Decimal:
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidOddsError(f"{name} must be a decimal number, got {value!r}", field=name)
    if not dec.is_finite():
        raise InvalidOddsError(f"{name} must be a finite number", field=name)
    return dec


def validate_odds_value(name: str, value) -> Decimal:
    """Return the odds as Decimal or raise InvalidOddsError. Bounds are inclusive."""
    dec = to_odds_decimal(name, value)
    # range first: quantize overflows the decimal context on huge values
    if dec < MIN_ODDS or dec > MAX_ODDS:
        raise InvalidOddsError(f"{name} must be between {MIN_ODDS} and {MAX_ODDS}, got {dec}", field=name)
    if dec.as_tuple().exponent < -2 and dec != dec.quantize(Decimal("0.01")):
        raise InvalidOddsError(f"{name} allows at most 2 decimal places, got {dec}", field=name)
    return dec.quantize(Decimal("0.01"))


def _check_text(name: str, value) -> None:
    if value is None or not str(value).strip():
        raise InvalidOddsError(f"{name} is required", field=name)
    lower = f" {str(value).lower()} "
    if any(p in lower for p in _XSS_PATTERNS):
        security_log.warning("xss_attempt", field=name, value=value)
        raise InvalidOddsError(f"Suspicious input detected in {name} field", field=name)
    if any(p in lower for p in _SQL_PATTERNS):
        security_log.warning("sql_injection_attempt", field=name, value=value)
        raise InvalidOddsError(f"Suspicious input detected in {name} field", field=name)


def _validate_common(data) -> None:
    _check_text("sport", data.sport)
    _check_text("home_team", data.home_team)
    _check_text("away_team", data.away_team)
    for name in ("home_odds", "draw_odds", "away_odds"):
        try:
            setattr(data, name, validate_odds_value(name, getattr(data, name)))
        except InvalidOddsError:
            security_log.warning(
                "invalid_odds", home_team=data.home_team, away_team=data.away_team,
                field=name, value=str(getattr(data, name)),
            )
            raise
    if not isinstance(data.match_date, datetime):
        raise InvalidOddsError("match_date must be a datetime", field="match_date")
    if data.match_date.tzinfo is not None:
        # stored naive UTC
        data.match_date = data.match_date.astimezone(timezone.utc).replace(tzinfo=None)


def validate_create(data, now: datetime) -> None:
    """Checks a CreateOddsInput in place; odds are normalised to 2 places."""
    _validate_common(data)
    if data.match_date <= now:
        raise InvalidOddsError("match_date must be in the future", field="match_date")


def validate_update(data) -> None:
    _validate_common(data)
    if data.active is not None and not isinstance(data.active, bool):
        raise InvalidOddsError("active must be a boolean", field="active")
