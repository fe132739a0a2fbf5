"""Unit tests for the zone rule filter and its input validation."""

import pytest

from zonewatch.core.exceptions import InvalidRuleTypeError
from zonewatch.models import ZoneRuleType
from zonewatch.services.zone_policy import ZonePolicy, allows, clamp_cooldown, parse_rule_type


def _policy(rule_type: ZoneRuleType, cooldown: int = 10) -> ZonePolicy:
    return ZonePolicy(zone_id=1, rule_type=rule_type, cooldown_minutes=cooldown)


# Test: Rule filter


def test_no_rule_allows_everything():
    """A zone without a rule keeps both classifications."""
    assert allows(None, is_known=True) is True
    assert allows(None, is_known=False) is True


def test_mixed_allows_everything():
    policy = _policy(ZoneRuleType.MIXED)
    assert allows(policy, is_known=True) is True
    assert allows(policy, is_known=False) is True


def test_known_only_blocks_unknown():
    policy = _policy(ZoneRuleType.KNOWN_ONLY)
    assert allows(policy, is_known=True) is True
    assert allows(policy, is_known=False) is False


def test_unknown_only_blocks_known():
    policy = _policy(ZoneRuleType.UNKNOWN_ONLY)
    assert allows(policy, is_known=True) is False
    assert allows(policy, is_known=False) is True


# Test: Rule type parsing


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("known_only", ZoneRuleType.KNOWN_ONLY),
        ("UNKNOWN_ONLY", ZoneRuleType.UNKNOWN_ONLY),
        ("  mixed ", ZoneRuleType.MIXED),
        (ZoneRuleType.MIXED, ZoneRuleType.MIXED),
    ],
)
def test_parse_rule_type_accepts_known_values(raw, expected):
    assert parse_rule_type(raw) is expected


@pytest.mark.parametrize("raw", ["", "everyone", "known-only", "none"])
def test_parse_rule_type_rejects_unknown_values(raw):
    """Unknown rule types are rejected rather than coerced."""
    with pytest.raises(InvalidRuleTypeError) as exc_info:
        parse_rule_type(raw)

    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == "INVALID_RULE_TYPE"
    assert exc_info.value.details["rule_type"] == raw


def test_parse_rule_type_truncates_long_values_in_details():
    with pytest.raises(InvalidRuleTypeError) as exc_info:
        parse_rule_type("x" * 500)

    assert len(exc_info.value.details["rule_type"]) == 50


# Test: Cooldown clamping


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (15, 15),
        (1, 1),
        (1440, 1440),
        (-5, 1),
        (100000, 1440),
        ("30", 30),
        (None, 10),
        (0, 10),
        ("soon", 10),
    ],
)
def test_clamp_cooldown(raw, expected):
    """Cooldowns are clamped into [1, 1440]; missing values use the default."""
    assert clamp_cooldown(raw, default=10) == expected


def test_clamp_cooldown_clamps_the_default_too():
    assert clamp_cooldown(None, default=5000) == 1440


def test_zone_policy_to_dict():
    assert _policy(ZoneRuleType.KNOWN_ONLY, 15).to_dict() == {
        "zone_id": 1,
        "rule_type": "known_only",
        "cooldown_minutes": 15,
    }
