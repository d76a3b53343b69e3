"""
Conversions between str enums and the VARCHAR columns that store them.

Payout status, frequency, actor and event type columns are plain strings
holding the lowercase (or upper snake case, for event types) enum value.
Rows may be written with either a member or a raw string, so reads and
writes go through these two helpers.
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar


E = TypeVar("E", bound=Enum)


def get_enum_value(member_or_str: Any) -> Optional[str]:
    """
    Column value for a member or an already-stored string.

        >>> get_enum_value(PayoutStatus.ON_HOLD)
        'on_hold'
    """
    if member_or_str is None:
        return None
    return member_or_str.value if isinstance(member_or_str, Enum) else str(member_or_str)


def parse_enum(enum_cls: Type[E], raw: Any) -> Optional[E]:
    """Member of ``enum_cls`` for a stored value, None when it is not one."""
    if raw is None or isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return None
