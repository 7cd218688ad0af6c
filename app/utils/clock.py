"""
Wall-clock helpers
Session timestamps are whole epoch seconds
"""
import time
from typing import Callable

Clock = Callable[[], int]


def epoch_seconds() -> int:
    """Current wall-clock time in whole epoch seconds"""
    return int(time.time())
