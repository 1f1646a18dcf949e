from __future__ import annotations

import time
from typing import Callable, Iterator


def on_interval(
    interval_s: float,
    immediate: bool = True,
    sleep: Callable[[float], object] = time.sleep,
) -> Iterator[None]:
    """
    Endless iterator that waits ``interval_s`` before each step.

    With ``immediate`` the first step does not wait. The wait starts when the
    consumer asks for the next step, so slow consumers drift rather than
    overlap.
    """
    skip = immediate
    while True:
        if skip:
            skip = False
        else:
            sleep(interval_s)
        yield None
