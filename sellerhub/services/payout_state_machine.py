"""
Payout status transition rules.

    pending    -> processing, on_hold, failed
    processing -> settled, failed, on_hold
    on_hold    -> pending, processing, failed
    failed     -> pending
    settled    -> (terminal)

Fail and hold are accepted from every status except settled, including
failed and on_hold themselves. Process and requeue are checked against
this table; approve and settle require pending and processing exactly.
"""
from typing import Dict, FrozenSet, Optional, Union

from sellerhub.core.enum_utils import parse_enum
from sellerhub.models.payout import PayoutStatus


VALID_PAYOUT_TRANSITIONS: Dict[PayoutStatus, FrozenSet[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({
        PayoutStatus.PROCESSING,
        PayoutStatus.ON_HOLD,
        PayoutStatus.FAILED,
    }),
    PayoutStatus.PROCESSING: frozenset({
        PayoutStatus.SETTLED,
        PayoutStatus.FAILED,
        PayoutStatus.ON_HOLD,
    }),
    PayoutStatus.ON_HOLD: frozenset({
        PayoutStatus.PENDING,
        PayoutStatus.PROCESSING,
        PayoutStatus.FAILED,
    }),
    PayoutStatus.FAILED: frozenset({
        PayoutStatus.PENDING,
    }),
    PayoutStatus.SETTLED: frozenset(),
}


def is_valid_transition(
    current: Union[PayoutStatus, str, None],
    target: Union[PayoutStatus, str, None],
) -> bool:
    """Return True if a payout may move from `current` to `target`."""
    current_status = parse_enum(PayoutStatus, current)
    target_status = parse_enum(PayoutStatus, target)
    if current_status is None or target_status is None:
        return False
    return target_status in VALID_PAYOUT_TRANSITIONS[current_status]


def mask_iban(iban: Optional[str]) -> str:
    """Replace all but the last 4 characters with '*'. Short IBANs are returned as-is."""
    if not iban:
        return ""
    if len(iban) <= 4:
        return iban
    return "*" * (len(iban) - 4) + iban[-4:]
