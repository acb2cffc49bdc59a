"""
Tests for the allocation record: team sizing, priority, state machine and team protocol.
"""

import pytest

from mail_manager.config import DEFAULT_PRIORITY
from mail_manager.core.allocation_item import AllocationItem, ItemState, priority_sort_key
from mail_manager.core.exceptions import (
    DispatchException,
    DuplicateAllocationException,
    ItemTooHeavyException,
    OverAllocationException,
    TransitionException,
)


def _in_backlog(mail_item, policy):
    item = AllocationItem(mail_item, policy)
    item.enter_backlog()
    return item


class TestCreation:

    def test_plain_item_gets_default_priority(self, make_item, policy):
        item = AllocationItem(make_item(floor=4), policy)
        assert item.priority == DEFAULT_PRIORITY
        assert item.destination == 4
        assert item.state == ItemState.CREATED

    def test_priority_item_keeps_its_level(self, make_item, policy):
        item = AllocationItem(make_item(priority=5), policy)
        assert item.priority == 5

    @pytest.mark.parametrize("weight,robots,heavy", [
        (1, 1, False),
        (2000, 1, False),
        (2001, 2, True),
        (2600, 2, True),
        (2601, 3, True),
        (3000, 3, True),
    ])
    def test_weight_tiers(self, make_item, policy, weight, robots, heavy):
        item = AllocationItem(make_item(weight=weight), policy)
        assert item.required_robots == robots
        assert item.heavy is heavy

    def test_too_heavy_is_rejected(self, make_item, policy):
        mail = make_item(weight=3001)
        with pytest.raises(ItemTooHeavyException) as exc_info:
            AllocationItem(mail, policy)
        assert exc_info.value.mail_item is mail
        assert exc_info.value.limit == 3000


class TestOrdering:

    def test_priority_then_destination(self, make_item, policy):
        items = [
            AllocationItem(make_item(floor=3, item_id="low"), policy),
            AllocationItem(make_item(floor=1, priority=5, item_id="urgent-low-floor"), policy),
            AllocationItem(make_item(floor=9, priority=5, item_id="urgent-high-floor"), policy),
        ]
        items.sort(key=priority_sort_key)
        assert [i.mail_item.id for i in items] == ["urgent-high-floor", "urgent-low-floor", "low"]

    def test_ties_keep_arrival_order(self, make_item, policy):
        items = [AllocationItem(make_item(floor=2, item_id=f"M{n}"), policy) for n in range(5)]
        items.sort(key=priority_sort_key)
        assert [i.mail_item.id for i in items] == ["M0", "M1", "M2", "M3", "M4"]


class TestStateMachine:

    def test_enter_backlog_only_once(self, make_item, policy):
        item = _in_backlog(make_item(), policy)
        assert item.state == ItemState.IN_BACKLOG
        with pytest.raises(TransitionException):
            item.enter_backlog()

    def test_cannot_acquire_before_backlog(self, make_item, make_robot, policy):
        item = AllocationItem(make_item(), policy)
        with pytest.raises(TransitionException):
            item.add_robot(make_robot())

    def test_light_item_goes_straight_to_dispatched(self, make_item, make_robot, policy):
        item = _in_backlog(make_item(), policy)
        robot = make_robot()
        item.add_robot(robot)
        assert item.state == ItemState.IN_BACKLOG
        assert item.is_complete
        item.dispatch_team()
        assert item.state == ItemState.DISPATCHED
        assert robot.dispatched

    def test_heavy_item_partial_team(self, make_item, make_robot, policy):
        item = _in_backlog(make_item(weight=2900), policy)
        item.add_robot(make_robot())
        assert item.state == ItemState.PARTIAL_TEAM
        assert item.still_needed == 2

        with pytest.raises(TransitionException):
            item.dispatch_team()

    def test_team_dispatches_in_membership_order(self, make_item, policy):
        order = []

        class RecordingRobot:
            def __init__(self, robot_id):
                self.robot_id = robot_id

            def dispatch(self):
                order.append(self.robot_id)

        item = _in_backlog(make_item(weight=2900), policy)
        for robot_id in ["A", "B", "C"]:
            item.add_robot(RecordingRobot(robot_id))
        item.dispatch_team()
        assert order == ["A", "B", "C"]
        assert item.state == ItemState.DISPATCHED

    def test_no_robots_after_dispatch(self, make_item, make_robot, policy):
        item = _in_backlog(make_item(), policy)
        item.add_robot(make_robot())
        item.dispatch_team()
        with pytest.raises(TransitionException):
            item.add_robot(make_robot())

    def test_tube_companion(self, make_item, policy):
        item = _in_backlog(make_item(), policy)
        item.mark_carried_in_tube()
        assert item.state == ItemState.DISPATCHED

    def test_heavy_item_never_in_tube(self, make_item, policy):
        item = _in_backlog(make_item(weight=2100), policy)
        with pytest.raises(TransitionException):
            item.mark_carried_in_tube()


class TestTeamInvariants:
    """Duplicate and overflow both dispatch the partial team before raising."""

    def test_duplicate_robot(self, make_item, make_robot, policy):
        item = _in_backlog(make_item(weight=2900), policy)
        robot = make_robot()
        item.add_robot(robot)

        with pytest.raises(DuplicateAllocationException) as exc_info:
            item.add_robot(robot)

        assert exc_info.value.robot is robot
        assert item.state == ItemState.ALLOCATION_ERROR
        assert robot.dispatched
        assert item.current_num_acquired_robots == 1

    def test_over_allocation(self, make_item, make_robot, policy):
        item = _in_backlog(make_item(weight=2100), policy)
        first, second, extra = make_robot(), make_robot(), make_robot()
        item.add_robot(first)
        item.add_robot(second)

        with pytest.raises(OverAllocationException):
            item.add_robot(extra)

        assert item.state == ItemState.ALLOCATION_ERROR
        assert first.dispatched and second.dispatched
        assert not extra.dispatched
        assert extra not in item.acquired_robots

    def test_error_logged(self, make_item, make_robot, policy, caplog):
        item = _in_backlog(make_item(weight=2900), policy)
        robot = make_robot()
        item.add_robot(robot)
        with caplog.at_level("ERROR"):
            with pytest.raises(DuplicateAllocationException):
                item.add_robot(robot)
        assert "partial team of 1/3" in caplog.text


class TestDispatchFailure:
    """A robot that refuses to leave is retried alone; the others leave once."""

    def test_only_failed_member_is_retried(self, make_item, make_robot, make_flaky_robot, policy):
        item = _in_backlog(make_item(weight=2100), policy)
        steady, flaky = make_robot(), make_flaky_robot("F1")
        item.add_robot(steady)
        item.add_robot(flaky)

        with pytest.raises(DispatchException) as exc_info:
            item.dispatch_team()

        assert exc_info.value.dispatched == [steady]
        assert [robot for robot, _ in exc_info.value.failures] == [flaky]
        assert item.state == ItemState.PARTIAL_TEAM
        assert item.undispatched_robots == (flaky,)

        assert item.dispatch_team() == [flaky]
        assert item.state == ItemState.DISPATCHED
        assert steady.dispatch_count == 1
        assert flaky.dispatch_count == 1

    def test_aborted_team_member_left_behind(self, make_item, make_flaky_robot, policy):
        item = _in_backlog(make_item(weight=2900), policy)
        flaky = make_flaky_robot("F1")
        item.add_robot(flaky)

        with pytest.raises(DuplicateAllocationException) as exc_info:
            item.add_robot(flaky)

        assert len(exc_info.value.dispatch_failures) == 1
        assert item.state == ItemState.ALLOCATION_ERROR
        assert item.undispatched_robots == (flaky,)

        assert item.dispatch_team() == [flaky]
        assert item.state == ItemState.ALLOCATION_ERROR
        assert item.undispatched_robots == ()
