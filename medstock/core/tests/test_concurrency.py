import threading

from medstock.core import InsufficientStock
from medstock.core.reconciliation import Observed


class BlockingCount:
    """Holds the count open until released, like an operator at the camera."""

    def __init__(self, count):
        self.count = count
        self.entered = threading.Event()
        self.release = threading.Event()

    def observe(self, request):
        self.entered.set()
        self.release.wait(timeout=5)
        return Observed(count=self.count)


def test_concurrent_dispenses_do_not_lose_updates(ward, add_med, nurse):
    add_med("m1", 10)
    slow = BlockingCount(4)
    results = {}

    def first():
        results["first"] = ward.dispense(nurse, "m1", 6, "P-1", slow)

    def second():
        try:
            results["second"] = ward.dispense(nurse, "m1", 6, "P-2", 4)
        except InsufficientStock as e:
            results["second"] = e

    t1 = threading.Thread(target=first)
    t1.start()
    assert slow.entered.wait(timeout=5)

    t2 = threading.Thread(target=second)
    t2.start()
    # The second dispense must wait for the medication lock held across the count
    t2.join(timeout=0.2)
    assert t2.is_alive()

    slow.release.set()
    t1.join(timeout=5)
    t2.join(timeout=5)

    assert results["first"].entry.pre_count == 10
    assert isinstance(results["second"], InsufficientStock)
    assert results["second"].available == 4
    assert ward.get_medication("m1").current_stock == 4
    assert len(ward.log) == 1
