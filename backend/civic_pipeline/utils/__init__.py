"""Utility modules"""
from .logger import get_logger, setup_logging, set_correlation_id, get_correlation_id
from .idgen import generate_id, generate_correlation_id
from .time import utc_now, parse_iso, coerce_datetime

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "get_correlation_id",
    "generate_id",
    "generate_correlation_id",
    "utc_now",
    "parse_iso",
    "coerce_datetime",
]
