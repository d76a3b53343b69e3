import pytest

from sellerhub.models.payout import PayoutStatus
from sellerhub.services.payout_state_machine import (
    VALID_PAYOUT_TRANSITIONS,
    is_valid_transition,
    mask_iban,
)


ALLOWED = {
    ("pending", "processing"),
    ("pending", "on_hold"),
    ("pending", "failed"),
    ("processing", "settled"),
    ("processing", "failed"),
    ("processing", "on_hold"),
    ("on_hold", "pending"),
    ("on_hold", "processing"),
    ("on_hold", "failed"),
    ("failed", "pending"),
}

ALL_PAIRS = [(a.value, b.value) for a in PayoutStatus for b in PayoutStatus]


@pytest.mark.parametrize("current,target", ALL_PAIRS)
def test_transition_table(current, target):
    assert is_valid_transition(current, target) == ((current, target) in ALLOWED)


def test_every_status_has_a_row():
    assert set(VALID_PAYOUT_TRANSITIONS) == set(PayoutStatus)


def test_settled_is_terminal():
    assert VALID_PAYOUT_TRANSITIONS[PayoutStatus.SETTLED] == frozenset()
    for status in PayoutStatus:
        assert not is_valid_transition(PayoutStatus.SETTLED, status)


def test_accepts_enum_members():
    assert is_valid_transition(PayoutStatus.PENDING, PayoutStatus.PROCESSING)
    assert not is_valid_transition(PayoutStatus.FAILED, PayoutStatus.SETTLED)


@pytest.mark.parametrize("current,target", [
    ("approved", "pending"),
    ("pending", "approved"),
    (None, "pending"),
    ("pending", None),
    ("", ""),
])
def test_unknown_status_is_rejected(current, target):
    assert is_valid_transition(current, target) is False


@pytest.mark.parametrize("iban,expected", [
    ("SA0380000000608010167519", "********************7519"),
    ("DE89370400440532013000", "******************3000"),
    ("12345", "*2345"),
    ("1234", "1234"),
    ("12", "12"),
    ("", ""),
    (None, ""),
])
def test_mask_iban(iban, expected):
    assert mask_iban(iban) == expected


def test_mask_iban_keeps_length():
    iban = "SA0380000000608010167519"
    masked = mask_iban(iban)
    assert len(masked) == len(iban)
    assert masked.endswith(iban[-4:])
    assert set(masked[:-4]) == {"*"}
