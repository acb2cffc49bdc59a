import pytest

from mail_manager.config import WeightPolicy
from mail_manager.core.mail_item import MailItem, PriorityMailItem
from mail_manager.core.mail_pool import MailPool
from mail_manager.core.robot import DeliveryRobot


@pytest.fixture
def policy():
    return WeightPolicy(individual_max_weight=2000, pair_max_weight=2600, triple_max_weight=3000)


@pytest.fixture
def pool(policy):
    return MailPool(policy=policy)


@pytest.fixture
def make_robot():
    counter = iter(range(1, 1000))

    def _make(robot_id=None):
        return DeliveryRobot(robot_id or f"R{next(counter)}")

    return _make


@pytest.fixture
def make_item():
    counter = iter(range(1, 1000))

    def _make(weight=500, floor=1, priority=None, item_id=None):
        item_id = item_id or f"M{next(counter)}"
        if priority is None:
            return MailItem(id=item_id, destination_floor=floor, weight=weight)
        return PriorityMailItem(id=item_id, destination_floor=floor, weight=weight, priority_level=priority)

    return _make


class FlakyDispatchRobot(DeliveryRobot):
    """Robot whose first dispatch attempts fail."""

    def __init__(self, robot_id, failures=1):
        super().__init__(robot_id)
        self.failures_left = failures

    def dispatch(self):
        if self.failures_left:
            self.failures_left -= 1
            raise RuntimeError(f"{self.robot_id} drive fault")
        super().dispatch()


@pytest.fixture
def make_flaky_robot():
    def _make(robot_id, failures=1):
        return FlakyDispatchRobot(robot_id, failures)

    return _make
