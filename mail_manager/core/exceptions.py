# exceptions.py

from typing import Any, List, Optional, Tuple


class MailPoolException(Exception):
    """
    Base class for every error raised by the mail pool.
    """
    pass


class TransitionException(MailPoolException):
    """
    Exception raised when an invalid allocation state transition is attempted.
    """
    pass


class ItemTooHeavyException(MailPoolException):
    """
    Raised when a mail item is heavier than the largest team can carry.

    Attributes:
        mail_item (Any): The rejected mail item.
        limit (int): The heaviest weight the pool accepts.
    """

    def __init__(self, mail_item: Any, limit: int) -> None:
        super().__init__(
            f"Mail item {mail_item.id} too heavy ({mail_item.weight} > {limit}). Robots cannot bear it."
        )
        self.mail_item = mail_item
        self.limit = limit


class ItemAllocationException(MailPoolException):
    """
    Raised when assigning a robot to a mail item breaks an allocation invariant.

    Attributes:
        mail_item (Any): The mail item being allocated.
        robot (Any): The robot that could not be added.
        dispatch_failures (List[Tuple[Any, Exception]]): Members of the partial team whose
                                                         dispatch failed while aborting it.
    """

    def __init__(self, message: str, mail_item: Any = None, robot: Any = None,
                 dispatch_failures: Optional[List[Tuple[Any, Exception]]] = None) -> None:
        super().__init__(message)
        self.mail_item = mail_item
        self.robot = robot
        self.dispatch_failures = dispatch_failures if dispatch_failures is not None else []


class DuplicateAllocationException(ItemAllocationException):
    """
    The same robot was added twice to one team.
    """
    pass


class OverAllocationException(ItemAllocationException):
    """
    A team would have more robots than its item requires.
    """
    pass


class DispatchException(MailPoolException):
    """
    Raised when one or more robots of a loaded team refused to be dispatched.

    The robots that did leave are not dispatched again; the others are retried.

    Attributes:
        mail_item (Any): The mail item carried by the team.
        failures (List[Tuple[Any, Exception]]): Each robot that failed, with its error.
        dispatched (List[Any]): Robots dispatched by the failing call.
        decisions (List[Any]): Decisions for the robots that did leave, filled in by the pool.
    """

    def __init__(self, mail_item: Any, failures: List[Tuple[Any, Exception]], dispatched: List[Any]) -> None:
        super().__init__(
            f"Item {mail_item.id}: could not dispatch "
            + ", ".join(f"{robot.robot_id} ({e})" for robot, e in failures)
        )
        self.mail_item = mail_item
        self.failures = failures
        self.dispatched = dispatched
        self.decisions: List[Any] = []


class RegistrationException(MailPoolException):
    """
    Raised when a robot cannot be registered as waiting (not empty, or already known).
    """
    pass


class StepAllocationError(MailPoolException):
    """
    Raised at the end of a step when one or more robots could not be allocated.

    The step still runs to completion for the other robots.

    Attributes:
        errors (List[Exception]): Per-robot errors, in service order.
        decisions (List[Any]): The decisions that were applied during the step.
    """

    def __init__(self, errors: List[Exception], decisions: Optional[List[Any]] = None) -> None:
        super().__init__(f"{len(errors)} allocation error(s) during step: " + "; ".join(str(e) for e in errors))
        self.errors = errors
        self.decisions = decisions if decisions is not None else []
