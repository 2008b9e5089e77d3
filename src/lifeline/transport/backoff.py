"""Fibonacci-shaped retry backoff"""

import time
from dataclasses import dataclass
from typing import List


@dataclass
class RetryState:
    """Attempt counter and (last_wait, wait) pair for one retry loop"""

    attempt: int = 1
    last_wait: int = 2
    wait: int = 3

    def advance(self) -> None:
        """Move to the next attempt, growing the wait interval"""
        self.last_wait, self.wait = self.wait, self.last_wait + self.wait
        self.attempt += 1

    def sleep(self) -> None:
        """Block for the current wait interval"""
        time.sleep(self.wait)

    def intervals(self, count: int) -> List[int]:
        """Preview the next ``count`` wait intervals without touching this state

        Args:
            count: Number of intervals to compute

        Returns:
            List of wait intervals in seconds
        """
        last_wait, wait = self.last_wait, self.wait
        waits = []
        for _ in range(count):
            waits.append(wait)
            last_wait, wait = wait, last_wait + wait
        return waits
