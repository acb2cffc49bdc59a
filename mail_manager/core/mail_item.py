# mail_item.py

from dataclasses import dataclass


@dataclass(frozen=True)
class MailItem:
    """
    An immutable mail item waiting to be delivered.

    Attributes:
        id (str): Unique identifier of the item.
        destination_floor (int): Floor the item must be delivered to.
        weight (int): Weight of the item in grams.
        arrival_time (int): Tick at which the item arrived (informational).
    """
    id: str
    destination_floor: int
    weight: int
    arrival_time: int = 0

    def __str__(self) -> str:
        return f"Mail Item:: ID: {self.id:>6} | Arrival: {self.arrival_time:>4} | Destination: {self.destination_floor:>2} | Weight: {self.weight:>4}"


@dataclass(frozen=True)
class PriorityMailItem(MailItem):
    """
    A mail item carrying an explicit priority level. Higher levels are served first.
    """
    priority_level: int = 1

    def __str__(self) -> str:
        return super().__str__() + f" | Priority: {self.priority_level:>3}"
