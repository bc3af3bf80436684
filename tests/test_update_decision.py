from datetime import timedelta

import pytest

from tracker.data_models.snapshot import SkillRecord
from tracker.operations.update_decision import UpdateAction, UpdateDecisionPolicy
from tests.helpers import NOW, make_snapshot, make_stats


@pytest.fixture
def policy():
    return UpdateDecisionPolicy(
        min_update_interval=timedelta(minutes=30),
        inactivity_threshold=timedelta(days=30),
    )


@pytest.mark.parametrize("candidate", [make_stats(10), make_stats(50000), make_stats(10 ** 9)])
def test_recent_snapshot_is_always_too_recent(policy, candidate):
    previous = make_snapshot("Woox", 50000, timedelta(minutes=10))
    decision = policy.decide(previous, None, candidate, NOW)
    assert decision.action is UpdateAction.SKIP_TOO_RECENT
    assert decision.xp_gained == 0


@pytest.mark.parametrize("new_value", [40000, 49999, 50000])
def test_no_gain_when_overall_not_above_previous(policy, new_value):
    previous = make_snapshot("Lynx", 50000, timedelta(hours=6))
    decision = policy.decide(previous, None, make_stats(new_value), NOW)
    assert decision.action is UpdateAction.SKIP_NO_GAIN
    assert decision.xp_gained == 0
    assert decision.xp_regression == (new_value < 50000)


@pytest.mark.parametrize("candidate", [make_stats(0), make_stats(50000), []])
def test_first_sample_always_proceeds(policy, candidate):
    decision = policy.decide(None, None, candidate, NOW)
    assert decision.action is UpdateAction.PROCEED_INSERT
    assert decision.is_new_player
    assert decision.xp_gained == 0


def test_xp_gained_is_real_xp_difference(policy):
    previous = make_snapshot("Lynx", 50005, timedelta(hours=6))
    decision = policy.decide(previous, None, make_stats(50129), NOW)
    assert decision.action is UpdateAction.PROCEED_INSERT
    assert not decision.is_new_player
    assert decision.xp_gained == 12


def test_interval_boundary_is_exclusive(policy):
    previous = make_snapshot("Lynx", 50000, timedelta(minutes=30))
    assert policy.check_schedule(previous, None, NOW) is None


def test_inactive_when_old_and_last_two_identical(policy):
    previous = make_snapshot("Durial", 50000, timedelta(days=31), snapshot_id=2)
    older = make_snapshot("Durial", 50000, timedelta(days=62), snapshot_id=1)
    decision = policy.decide(previous, older, make_stats(60000), NOW)
    assert decision.action is UpdateAction.SKIP_INACTIVE


def test_inactive_needs_two_snapshots(policy):
    previous = make_snapshot("Durial", 50000, timedelta(days=31))
    assert policy.check_schedule(previous, None, NOW) is None
    assert policy.decide(previous, None, make_stats(60000), NOW).action is UpdateAction.PROCEED_INSERT


def test_inactive_needs_threshold_exceeded(policy):
    previous = make_snapshot("Durial", 50000, timedelta(days=29), snapshot_id=2)
    older = make_snapshot("Durial", 50000, timedelta(days=60), snapshot_id=1)
    assert policy.check_schedule(previous, older, NOW) is None


def test_inactive_not_triggered_when_last_two_differ(policy):
    previous = make_snapshot("Durial", 50100, timedelta(days=31), snapshot_id=2)
    older = make_snapshot("Durial", 50000, timedelta(days=62), snapshot_id=1)
    assert policy.check_schedule(previous, older, NOW) is None


def test_inactive_comparison_is_literal_and_order_sensitive(policy):
    # Same records in a different order are not treated as unchanged
    stats = make_stats(50000)
    previous = make_snapshot("Durial", 50000, timedelta(days=31), snapshot_id=2, stats=stats)
    older = make_snapshot("Durial", 50000, timedelta(days=62), snapshot_id=1, stats=list(reversed(stats)))
    assert policy.check_schedule(previous, older, NOW) is None
    
    # A skill appearing between samples also breaks equality
    extra = stats + [SkillRecord(type=21, level=1, value=0)]
    previous = make_snapshot("Durial", 50000, timedelta(days=31), snapshot_id=2, stats=extra)
    older = make_snapshot("Durial", 50000, timedelta(days=62), snapshot_id=1, stats=stats)
    assert policy.check_schedule(previous, older, NOW) is None


def test_too_recent_checked_before_inactive():
    policy = UpdateDecisionPolicy(
        min_update_interval=timedelta(days=60),
        inactivity_threshold=timedelta(days=30),
    )
    previous = make_snapshot("Durial", 50000, timedelta(days=31), snapshot_id=2)
    older = make_snapshot("Durial", 50000, timedelta(days=62), snapshot_id=1)
    assert policy.check_schedule(previous, older, NOW).action is UpdateAction.SKIP_TOO_RECENT


def test_naive_snapshot_time_treated_as_utc(policy):
    previous = make_snapshot("Woox", 50000, timedelta(minutes=10))
    naive = previous.__class__(
        id=previous.id,
        username=previous.username,
        created_at=previous.created_at.replace(tzinfo=None),
        stats=previous.stats,
    )
    assert policy.check_schedule(naive, None, NOW).action is UpdateAction.SKIP_TOO_RECENT
