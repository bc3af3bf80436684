from datetime import timedelta

from tracker.data_models.snapshot import SkillRecord
from tracker.operations.snapshot_comparison import compare_snapshots
from tests.helpers import make_snapshot, make_stats


def test_compare_lists_only_changed_skills():
    old = make_snapshot("Zezima", 50000, timedelta(days=1), snapshot_id=1)
    new_stats = make_stats(52000, attack_value=2000)
    new = make_snapshot("Zezima", 52000, timedelta(0), snapshot_id=2, stats=new_stats)
    
    summary = compare_snapshots(old, new)
    assert summary.total_xp_gained == 200
    assert summary.last_snapshot_time == old.created_at
    assert [c.skill_type for c in summary.changes] == [0, 1]
    attack = summary.changes[1]
    assert attack.skill_name == "Attack"
    assert (attack.old_xp, attack.new_xp, attack.xp_diff) == (0, 200, 200)
    assert attack.level_diff == 0


def test_compare_counts_new_skills_from_zero():
    old = make_snapshot("Zezima", 50000, timedelta(days=1), snapshot_id=1)
    stats = make_stats(50000) + [SkillRecord(type=21, level=5, value=3880)]
    new = make_snapshot("Zezima", 50000, timedelta(0), snapshot_id=2, stats=stats)
    
    summary = compare_snapshots(old, new)
    assert summary.total_xp_gained == 0
    assert len(summary.changes) == 1
    change = summary.changes[0]
    assert change.skill_name == "Runecrafting"
    assert (change.old_level, change.new_level, change.level_diff) == (1, 5, 4)
    assert change.new_xp == 388


def test_compare_identical_snapshots():
    old = make_snapshot("Zezima", 50000, timedelta(days=1), snapshot_id=1)
    new = make_snapshot("Zezima", 50000, timedelta(0), snapshot_id=2)
    assert compare_snapshots(old, new).changes == []
