# allocation_interface.py

from enum import Enum
from dataclasses import dataclass
from typing import Optional

class AllocationAction(Enum):
    """
    Defines what happened to a robot during one allocation step.

    Attributes:
        DISPATCH: The robot was loaded and dispatched on its own.
        JOIN_TEAM: The robot was loaded with a heavy item and waits for teammates.
        DISPATCH_TEAM: The robot left as a member of a team that just became complete.
    """
    DISPATCH = 1
    JOIN_TEAM = 2
    DISPATCH_TEAM = 3

@dataclass
class AllocationDecision:
    """
    Data Transfer Object (DTO) describing the outcome for one robot in a step.

    Attributes:
        action (AllocationAction): What was done with the robot.
        mail_item_id (str): Identifier of the mail item placed in the robot's hand.
        robot_id (str): Identifier of the robot.
        tube_item_id (Optional[str]): Identifier of the mail item placed in the tube, if any.
        reason (str): A textual explanation for the decision (default is empty).
    """
    action: AllocationAction
    mail_item_id: str
    robot_id: str
    tube_item_id: Optional[str] = None
    reason: str = ""
