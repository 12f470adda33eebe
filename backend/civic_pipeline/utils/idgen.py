"""ID Generation Utilities"""
import uuid
from typing import Optional

from .time import utc_now


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'CMT', 'NLOG')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('CMT')
        'CMT-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_comment_id() -> str:
    """Generate issue comment ID"""
    return generate_id("CMT")


def generate_notification_id() -> str:
    """Generate in-app notification ID"""
    return generate_id("NTF")


def generate_notification_log_id() -> str:
    """Generate notification log ID"""
    return generate_id("NLOG")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request and event tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
