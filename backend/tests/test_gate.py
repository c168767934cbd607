import pytest

from backend.siloe.policies.gate import FREE_STUDY_LIMIT, needs_subscription


def test_free_limit_is_three():
    assert FREE_STUDY_LIMIT == 3


def test_third_study_used_without_subscription_is_gated():
    assert needs_subscription(3, False) is True


def test_under_limit_is_free():
    assert needs_subscription(2, False) is False


def test_active_subscription_is_never_gated():
    assert needs_subscription(5, True) is False


@pytest.mark.parametrize("count", range(0, 8))
@pytest.mark.parametrize("active", [False, True])
def test_gate_matches_rule(count, active):
    expected = count >= FREE_STUDY_LIMIT and not active
    assert needs_subscription(count, active) is expected


def test_custom_free_limit():
    assert needs_subscription(1, False, free_limit=1) is True
    assert needs_subscription(0, False, free_limit=1) is False
