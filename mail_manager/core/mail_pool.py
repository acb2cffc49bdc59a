# mail_pool.py

import logging
import threading
from typing import Any, List, Optional, Tuple

from mail_manager.allocation_interface import AllocationAction, AllocationDecision
from mail_manager.config import WeightPolicy
from .allocation_item import AllocationItem, ItemState, priority_sort_key
from .exceptions import (
    DispatchException,
    DuplicateAllocationException,
    ItemTooHeavyException,
    MailPoolException,
    RegistrationException,
    StepAllocationError,
)
from .mail_item import MailItem
from .robot import RobotHandle

class MailPool:
    """
    Allocation engine matching waiting robots to pending mail items.

    The pool keeps the backlog of unallocated items in priority order and a
    FIFO queue of robots waiting to be loaded. Once per tick the driver calls
    step(), which loads every waiting robot it can and dispatches complete loads.

    Items heavier than one robot can carry are delivered by a team. Only one
    team is formed at a time: while a team is incomplete, every robot that
    becomes available joins it before any other item is allocated.

    Attributes:
        policy (WeightPolicy): Weight thresholds deciding team sizes.
        logger (Any): Logger instance.
        _backlog (List[AllocationItem]): Unallocated items, highest rank first.
        _robots (List[RobotHandle]): Registered robots waiting for a load, in arrival order.
        _pending_team (Optional[AllocationItem]): Heavy item currently gathering its team.
        _undispatched (List[AllocationItem]): Loaded items with robots that refused to dispatch, retried each step.
    """

    def __init__(self, policy: Optional[WeightPolicy] = None, logger: Optional[Any] = None) -> None:
        """
        Initializes an empty MailPool.

        Args:
            policy (Optional[WeightPolicy]): Weight thresholds, module defaults if omitted.
            logger (Optional[Any]): Logger, defaults to this module's logger.
        """
        self.policy = policy if policy is not None else WeightPolicy()
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._backlog: List[AllocationItem] = []
        self._robots: List[RobotHandle] = []
        self._pending_team: Optional[AllocationItem] = None
        self._undispatched: List[AllocationItem] = []
        self._lock = threading.RLock()

    @property
    def backlog(self) -> Tuple[AllocationItem, ...]:
        with self._lock:
            return tuple(self._backlog)

    @property
    def waiting_robots(self) -> Tuple[RobotHandle, ...]:
        with self._lock:
            return tuple(self._robots)

    @property
    def pending_team(self) -> Optional[AllocationItem]:
        with self._lock:
            return self._pending_team

    @property
    def undispatched(self) -> Tuple[AllocationItem, ...]:
        with self._lock:
            return tuple(self._undispatched)

    @property
    def is_forming_team(self) -> bool:
        with self._lock:
            return self._pending_team is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._backlog)

    def add_to_pool(self, mail_item: MailItem) -> AllocationItem:
        """
        Admits a new mail item into the backlog.

        The backlog is re-sorted with a stable sort, so items of equal rank
        keep their arrival order.

        Args:
            mail_item (MailItem): The arriving item.

        Returns:
            AllocationItem: The record created for the item.

        Raises:
            ItemTooHeavyException: If no team can carry the item. The item is discarded.
        """
        with self._lock:
            try:
                item = AllocationItem(mail_item, self.policy, self.logger)
            except ItemTooHeavyException as e:
                self.logger.error(f"Mail item {mail_item.id} rejected: {e}")
                raise

            item.enter_backlog()
            self._backlog.append(item)
            self._backlog.sort(key=priority_sort_key)

        self.logger.info(
            f"Mail item {mail_item.id} added to pool (priority {item.priority}, "
            f"{item.required_robots} robot(s) needed)."
        )
        return item

    def register_waiting(self, robot: RobotHandle) -> None:
        """
        Registers an empty robot as waiting for a load.

        Args:
            robot (RobotHandle): The robot to queue.

        Raises:
            RegistrationException: If the robot is not empty, already waiting,
                                   or already holding the pending team's item.
        """
        with self._lock:
            if robot in self._robots:
                raise RegistrationException(f"Robot {robot.robot_id} is already registered.")
            if self._pending_team is not None and robot in self._pending_team.acquired_robots:
                raise RegistrationException(f"Robot {robot.robot_id} is waiting for its team to complete.")
            if any(robot in item.undispatched_robots for item in self._undispatched):
                raise RegistrationException(f"Robot {robot.robot_id} is still loaded, waiting to be dispatched.")
            if not robot.is_empty():
                raise RegistrationException(f"Robot {robot.robot_id} must be empty to register.")

            self._robots.append(robot)
        self.logger.info(f"Robot {robot.robot_id} registered as waiting.")

    def step(self) -> List[AllocationDecision]:
        """
        Runs one allocation pass over every waiting robot, in registration order.

        Loads whose dispatch failed in an earlier step are retried first. Then
        each waiting robot either joins the pending team, or takes the highest
        ranked item from the backlog (plus a light companion in its tube when
        the hand item is light), or stays waiting if there is nothing to allocate.
        A failure on one robot is logged and does not stop the pass.

        Returns:
            List[AllocationDecision]: What was done with each robot this step.

        Raises:
            StepAllocationError: After the pass, if any robot could not be allocated or dispatched.
        """
        with self._lock:
            decisions: List[AllocationDecision] = []
            errors: List[Exception] = []

            self._retry_undispatched(decisions, errors)

            for robot in list(self._robots):
                try:
                    if self._pending_team is not None:
                        decisions.extend(self._continue_team(robot))
                    elif self._backlog:
                        decisions.extend(self._start_allocation(robot, errors))
                except Exception as e:
                    self.logger.error(f"Failed to allocate robot {robot.robot_id}: {e}")
                    if isinstance(e, DispatchException):
                        decisions.extend(e.decisions)
                    errors.append(e)

            if errors:
                raise StepAllocationError(errors, decisions)
            return decisions

    def _retry_undispatched(self, decisions: List[AllocationDecision], errors: List[Exception]) -> None:
        """
        Dispatches again the robots left loaded by an earlier failed dispatch.

        Args:
            decisions (List[AllocationDecision]): Step decisions, receives the robots that left.
            errors (List[Exception]): Step error list, receives the robots that failed again.
        """
        for item in list(self._undispatched):
            try:
                dispatched = item.dispatch_team()
            except DispatchException as e:
                decisions.extend(self._dispatch_decisions(item, e.dispatched))
                errors.append(e)
                continue
            except Exception as e:
                self.logger.error(f"Failed to dispatch robots for {item.mail_item.id}: {e}")
                errors.append(e)
                continue
            self._undispatched.remove(item)
            self.logger.info(f"Delayed dispatch for {item.mail_item.id} succeeded.")
            decisions.extend(self._dispatch_decisions(item, dispatched))

    def _dispatch(self, item: AllocationItem, tube_item_id: Optional[str] = None) -> List[AllocationDecision]:
        """
        Dispatches a complete load. On failure the record is kept for retry.

        Raises:
            DispatchException: If a robot refused to leave. Robots that did leave
                               are listed on the exception.
        """
        try:
            dispatched = item.dispatch_team()
        except DispatchException as e:
            self._undispatched.append(item)
            e.decisions = self._dispatch_decisions(item, e.dispatched, tube_item_id)
            raise
        return self._dispatch_decisions(item, dispatched, tube_item_id)

    def _dispatch_decisions(self, item: AllocationItem, robots: List[RobotHandle],
                            tube_item_id: Optional[str] = None) -> List[AllocationDecision]:
        if not item.heavy:
            return [
                AllocationDecision(
                    action=AllocationAction.DISPATCH,
                    mail_item_id=item.mail_item.id,
                    robot_id=robot.robot_id,
                    tube_item_id=tube_item_id,
                    reason="Single robot load"
                )
                for robot in robots
            ]
        return [
            AllocationDecision(
                action=AllocationAction.DISPATCH_TEAM,
                mail_item_id=item.mail_item.id,
                robot_id=robot.robot_id,
                reason=f"Team of {item.required_robots} complete"
            )
            for robot in robots
        ]

    def _continue_team(self, robot: RobotHandle) -> List[AllocationDecision]:
        """
        Adds a robot to the pending team, dispatching the team once it is complete.

        Args:
            robot (RobotHandle): The next waiting robot.

        Returns:
            List[AllocationDecision]: One JOIN_TEAM decision, or one DISPATCH_TEAM per member.

        Raises:
            ItemAllocationException: If the robot cannot join. The partial team has been dispatched.
            DispatchException: If a member refused to leave. The team is kept for retry.
        """
        team = self._pending_team
        try:
            team.check_can_join(robot)
        except MailPoolException as e:
            if team.state == ItemState.ALLOCATION_ERROR:
                self._pending_team = None
                if team.undispatched_robots:
                    self._undispatched.append(team)
            # a duplicate member was dispatched with its team
            if isinstance(e, DuplicateAllocationException) and robot in self._robots:
                self._robots.remove(robot)
            raise

        robot.add_to_hand(team.mail_item)
        team.add_robot(robot)
        self._robots.remove(robot)

        if not team.is_complete:
            return [AllocationDecision(
                action=AllocationAction.JOIN_TEAM,
                mail_item_id=team.mail_item.id,
                robot_id=robot.robot_id,
                reason=f"Team {team.current_num_acquired_robots}/{team.required_robots}"
            )]

        try:
            return self._dispatch(team)
        finally:
            self._pending_team = None

    def _start_allocation(self, robot: RobotHandle, errors: List[Exception]) -> List[AllocationDecision]:
        """
        Loads a robot with the highest ranked backlog item.

        The hand is filled first so that the higher priority item is the one
        guaranteed to travel. Heavy items never get a tube companion.

        Args:
            robot (RobotHandle): The next waiting robot.
            errors (List[Exception]): Step error list, receives tube loading failures.

        Returns:
            List[AllocationDecision]: DISPATCH for a single-robot load, JOIN_TEAM otherwise.

        Raises:
            DispatchException: If the robot refused to leave. The load is kept for retry.
        """
        item = self._backlog[0]
        robot.add_to_hand(item.mail_item)
        self._backlog.pop(0)
        item.add_robot(robot)
        self._robots.remove(robot)

        tube_item: Optional[AllocationItem] = None
        if not item.heavy:
            idx = self._find_light_item_index()
            if idx is not None:
                light = self._backlog[idx]
                try:
                    robot.add_to_tube(light.mail_item)
                except Exception as e:
                    self.logger.error(f"Robot {robot.robot_id} could not take {light.mail_item.id} in tube: {e}")
                    errors.append(e)
                else:
                    self._backlog.pop(idx)
                    light.mark_carried_in_tube()
                    tube_item = light

        tube_item_id = tube_item.mail_item.id if tube_item is not None else None

        if item.is_complete:
            decisions = self._dispatch(item, tube_item_id)
            self.logger.info(f"Robot {robot.robot_id} dispatched with {item.mail_item.id}"
                             + (f" and {tube_item_id} in tube." if tube_item_id else "."))
            return decisions

        self._pending_team = item
        return [AllocationDecision(
            action=AllocationAction.JOIN_TEAM,
            mail_item_id=item.mail_item.id,
            robot_id=robot.robot_id,
            reason=f"Team 1/{item.required_robots}"
        )]

    def _find_light_item_index(self) -> Optional[int]:
        """
        Finds the first item in the backlog that a single robot can carry.

        Returns:
            Optional[int]: Its index in the backlog, or None if every item is heavy.
        """
        for idx, item in enumerate(self._backlog):
            if not item.heavy:
                return idx
        return None
