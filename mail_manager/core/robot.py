# robot.py

from abc import ABC, abstractmethod
from typing import Optional

from .mail_item import MailItem


class RobotHandle(ABC):
    """
    Interface the mail pool uses to load and dispatch a delivery robot.

    Movement after dispatch belongs to the robot itself; the pool only fills the
    two carry slots and tells the robot when to leave.

    Attributes:
        robot_id (str): The unique identifier of the robot.
    """

    robot_id: str

    @abstractmethod
    def is_empty(self) -> bool:
        """
        Returns:
            bool: True if nothing is in the hand or the tube.
        """
        pass

    @abstractmethod
    def add_to_hand(self, mail_item: MailItem) -> None:
        """
        Places a mail item in the robot's hand.

        Args:
            mail_item (MailItem): The item to carry.
        """
        pass

    @abstractmethod
    def add_to_tube(self, mail_item: MailItem) -> None:
        """
        Places a light mail item in the robot's tube.

        Args:
            mail_item (MailItem): The item to carry.
        """
        pass

    @abstractmethod
    def dispatch(self) -> None:
        """
        Tells the robot its load is complete and it may start delivering.
        """
        pass


class DeliveryRobot(RobotHandle):
    """
    Minimal robot that records what it was given.

    Used by drivers without their own robot model, and by the test-suite.

    Attributes:
        robot_id (str): The unique identifier of the robot.
        hand (Optional[MailItem]): Item held in the hand.
        tube (Optional[MailItem]): Item held in the tube.
        dispatched (bool): True once dispatched for the current load.
        dispatch_count (int): Number of loads dispatched since creation.
    """

    def __init__(self, robot_id: str) -> None:
        self.robot_id = robot_id
        self.hand: Optional[MailItem] = None
        self.tube: Optional[MailItem] = None
        self.dispatched = False
        self.dispatch_count = 0

    def is_empty(self) -> bool:
        return self.hand is None and self.tube is None

    def add_to_hand(self, mail_item: MailItem) -> None:
        if self.hand is not None:
            raise ValueError(f"Robot {self.robot_id} already holds {self.hand.id} in hand.")
        self.hand = mail_item

    def add_to_tube(self, mail_item: MailItem) -> None:
        if self.tube is not None:
            raise ValueError(f"Robot {self.robot_id} already holds {self.tube.id} in tube.")
        self.tube = mail_item

    def dispatch(self) -> None:
        if self.dispatched:
            raise ValueError(f"Robot {self.robot_id} has already been dispatched for this load.")
        self.dispatched = True
        self.dispatch_count += 1

    def unload(self) -> None:
        """
        Empties both slots after delivery so the robot can be registered again.
        """
        self.hand = None
        self.tube = None
        self.dispatched = False

    def __repr__(self) -> str:
        return f"DeliveryRobot({self.robot_id!r})"
