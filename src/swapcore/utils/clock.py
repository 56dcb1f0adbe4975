"""Time source for swap timeouts and event timestamps."""

import time
from typing import Callable

# Returns the current time in whole seconds since the epoch.
Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())
