"""
Utilities package for the SecurePay+ sync core.

Exports shared helpers for logging and fixed-point money handling.
Keep this package lightweight and free of store/session logic.
"""

from securepay.utils.logging import configure_logging, get_logger
from securepay.utils.money import coerce_money, format_money, round_half_up, to_money

__all__ = [
    "configure_logging",
    "get_logger",
    "coerce_money",
    "format_money",
    "round_half_up",
    "to_money",
]
