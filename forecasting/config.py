import os

DEFAULT_REFERENCE_CURRENCY = "EUR"
DEFAULT_FORECAST_HORIZON_MONTHS = 12
DEFAULT_TRANSFER_MATCH_WINDOW_DAYS = 14
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def get_reference_currency() -> str:
    raw = os.getenv("REFERENCE_CURRENCY", DEFAULT_REFERENCE_CURRENCY)
    normalized = raw.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        return DEFAULT_REFERENCE_CURRENCY
    return normalized


def _get_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_forecast_horizon_months() -> int:
    return _get_positive_int("FORECAST_HORIZON_MONTHS", DEFAULT_FORECAST_HORIZON_MONTHS)


def get_transfer_match_window_days() -> int:
    return _get_positive_int("TRANSFER_MATCH_WINDOW_DAYS", DEFAULT_TRANSFER_MATCH_WINDOW_DAYS)


def get_log_level() -> str:
    raw = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    return raw if raw in LOG_LEVELS else "INFO"


REFERENCE_CURRENCY = get_reference_currency()
FORECAST_HORIZON_MONTHS = get_forecast_horizon_months()
TRANSFER_MATCH_WINDOW_DAYS = get_transfer_match_window_days()
LOG_LEVEL = get_log_level()
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
