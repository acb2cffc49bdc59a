# allocation_item.py

import logging
from enum import Enum
from typing import Any, List, Optional, Tuple

from mail_manager.config import DEFAULT_PRIORITY, WeightPolicy
from .exceptions import (
    DispatchException,
    DuplicateAllocationException,
    ItemTooHeavyException,
    OverAllocationException,
    TransitionException,
)
from .mail_item import MailItem, PriorityMailItem
from .robot import RobotHandle

class ItemState(Enum):
    """
    Enumeration representing the allocation lifecycle of a mail item.

    A record that is rejected for weight is never built, so it has no state.

    Attributes:
        CREATED: Record built, not yet in the backlog.
        IN_BACKLOG: Waiting in the pool for a robot.
        PARTIAL_TEAM: Heavy item holding some, but not all, of its robots, or a full
                      team with a member that has not dispatched yet.
        DISPATCHED: Every robot carrying the item has been dispatched.
        ALLOCATION_ERROR: Team formation broke an invariant; the partial team was dispatched.
    """
    CREATED = 0
    IN_BACKLOG = 1
    PARTIAL_TEAM = 2
    DISPATCHED = 3
    ALLOCATION_ERROR = 4


def priority_sort_key(item: "AllocationItem") -> Tuple[int, int]:
    """
    Sort key putting higher priority first, then higher destination floor first.

    Must be used with a stable sort so that equal keys keep arrival order.
    """
    return (-item.priority, -item.destination)


class AllocationItem:
    """
    Scheduling record wrapped around one mail item.

    Holds the priority and destination used for ordering, the number of robots
    the item needs, and the robots acquired so far.

    Attributes:
        mail_item (MailItem): The wrapped mail item.
        priority (int): Priority level, DEFAULT_PRIORITY for ordinary items.
        destination (int): Destination floor.
        required_robots (int): Size of the team needed to carry the item.
        heavy (bool): True if more than one robot is needed.
        state (ItemState): Current lifecycle state.
    """

    def __init__(self, mail_item: MailItem, policy: WeightPolicy, logger: Optional[Any] = None) -> None:
        """
        Builds the record.

        Args:
            mail_item (MailItem): The item to wrap.
            policy (WeightPolicy): Thresholds used to compute the team size.
            logger (Optional[Any]): Logger, defaults to this module's logger.

        Raises:
            ItemTooHeavyException: If no team is large enough to carry the item.
        """
        required = policy.required_robots(mail_item.weight)
        if required is None:
            raise ItemTooHeavyException(mail_item, policy.triple_max_weight)

        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.mail_item = mail_item
        if isinstance(mail_item, PriorityMailItem):
            self.priority = mail_item.priority_level
        else:
            self.priority = DEFAULT_PRIORITY
        self.destination = mail_item.destination_floor
        self.required_robots = required
        self.heavy = required > 1
        self.state = ItemState.CREATED
        self._acquired_robots: List[RobotHandle] = []
        self._dispatched_robots: List[RobotHandle] = []

    @property
    def acquired_robots(self) -> Tuple[RobotHandle, ...]:
        return tuple(self._acquired_robots)

    @property
    def undispatched_robots(self) -> Tuple[RobotHandle, ...]:
        return tuple(r for r in self._acquired_robots if r not in self._dispatched_robots)

    @property
    def current_num_acquired_robots(self) -> int:
        return len(self._acquired_robots)

    @property
    def still_needed(self) -> int:
        return self.required_robots - len(self._acquired_robots)

    @property
    def is_complete(self) -> bool:
        return len(self._acquired_robots) == self.required_robots

    def enter_backlog(self) -> None:
        """
        Marks the record as waiting in the pool.

        Raises:
            TransitionException: If the record is not in CREATED state.
        """
        if self.state != ItemState.CREATED:
            raise TransitionException(f"Item {self.mail_item.id} can only enter the backlog from CREATED state.")
        self.state = ItemState.IN_BACKLOG

    def check_can_join(self, robot: RobotHandle) -> None:
        """
        Verifies that the robot may join this item's team, before it is loaded.

        On a duplicate or an overflow the robots already acquired are dispatched
        so none of them stays loaded and stranded, and the record moves to
        ALLOCATION_ERROR.

        Args:
            robot (RobotHandle): The candidate robot.

        Raises:
            TransitionException: If the record no longer accepts robots.
            DuplicateAllocationException: If the robot is already a member.
            OverAllocationException: If the team is already complete.
        """
        if self.state not in [ItemState.IN_BACKLOG, ItemState.PARTIAL_TEAM]:
            raise TransitionException(
                f"Item {self.mail_item.id} cannot acquire robots in state {self.state.name}."
            )

        if robot in self._acquired_robots:
            failures = self._abort_team()
            raise DuplicateAllocationException(
                f"Robot {robot.robot_id} already on the team for item {self.mail_item.id}.",
                mail_item=self.mail_item, robot=robot, dispatch_failures=failures
            )

        if len(self._acquired_robots) + 1 > self.required_robots:
            failures = self._abort_team()
            raise OverAllocationException(
                f"Item {self.mail_item.id} needs {self.required_robots} robots, cannot add {robot.robot_id}.",
                mail_item=self.mail_item, robot=robot, dispatch_failures=failures
            )

    def add_robot(self, robot: RobotHandle) -> None:
        """
        Adds a robot to the set carrying this item.

        Args:
            robot (RobotHandle): The robot whose hand now holds the item.

        Raises:
            TransitionException, DuplicateAllocationException, OverAllocationException:
                See check_can_join.
        """
        self.check_can_join(robot)
        self._acquired_robots.append(robot)

        if self.heavy:
            self.logger.info(f"{robot.robot_id} joins the team to deliver [{self.mail_item.id}]")
            if self.still_needed > 0:
                self.logger.info(f"Heavy mail item {self.mail_item.id} still needs {self.still_needed} extra robot(s).")

        if not self.is_complete:
            self.state = ItemState.PARTIAL_TEAM

    def dispatch_team(self) -> List[RobotHandle]:
        """
        Dispatches every acquired robot not yet dispatched, in the order they joined.

        A robot whose dispatch fails does not stop the others. The record keeps
        its state until every member has left, so calling this again retries
        only the robots that failed. After an aborted team it retries the
        members left behind and stays in ALLOCATION_ERROR.

        Returns:
            List[RobotHandle]: The robots dispatched by this call.

        Raises:
            TransitionException: If the team is not complete.
            DispatchException: If at least one robot could not be dispatched.
        """
        if self.state != ItemState.ALLOCATION_ERROR:
            if self.state not in [ItemState.IN_BACKLOG, ItemState.PARTIAL_TEAM] or not self.is_complete:
                raise TransitionException(
                    f"Item {self.mail_item.id} cannot dispatch with {self.current_num_acquired_robots}/"
                    f"{self.required_robots} robots in state {self.state.name}."
                )
            if self.heavy and not self._dispatched_robots:
                self.logger.info(f"Heavy mail item {self.mail_item.id} has enough robots, team dispatching.")

        dispatched, failures = self._dispatch_members()
        if failures:
            raise DispatchException(self.mail_item, failures, dispatched)

        if self.state != ItemState.ALLOCATION_ERROR:
            self.state = ItemState.DISPATCHED
        return dispatched

    def mark_carried_in_tube(self) -> None:
        """
        Marks a light record as taken from the backlog into a robot's tube.

        Raises:
            TransitionException: If the record is heavy or not in the backlog.
        """
        if self.heavy or self.state != ItemState.IN_BACKLOG:
            raise TransitionException(f"Item {self.mail_item.id} cannot be carried in a tube.")
        self.state = ItemState.DISPATCHED

    def _abort_team(self) -> List[Tuple[RobotHandle, Exception]]:
        self.logger.error(
            f"Allocation error on item {self.mail_item.id}: dispatching partial team of "
            f"{self.current_num_acquired_robots}/{self.required_robots}."
        )
        _, failures = self._dispatch_members()
        self.state = ItemState.ALLOCATION_ERROR
        return failures

    def _dispatch_members(self) -> Tuple[List[RobotHandle], List[Tuple[RobotHandle, Exception]]]:
        dispatched: List[RobotHandle] = []
        failures: List[Tuple[RobotHandle, Exception]] = []
        for robot in self._acquired_robots:
            if robot in self._dispatched_robots:
                continue
            try:
                robot.dispatch()
            except Exception as e:
                self.logger.error(f"Robot {robot.robot_id} failed to dispatch with {self.mail_item.id}: {e}")
                failures.append((robot, e))
            else:
                self._dispatched_robots.append(robot)
                dispatched.append(robot)
        return dispatched, failures

    def __repr__(self) -> str:
        return (f"AllocationItem(id={self.mail_item.id!r}, priority={self.priority}, "
                f"destination={self.destination}, robots={self.current_num_acquired_robots}/{self.required_robots}, "
                f"state={self.state.name})")
