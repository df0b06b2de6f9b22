"""
Epoch guard for discarding results of superseded asynchronous work.

Usage:
    guard = EpochGuard()
    epoch = guard.advance()      # new request supersedes older ones
    result = await slow_call()
    if guard.is_current(epoch):
        apply(result)
"""


class EpochGuard:
    """Monotonic counter; a captured epoch is valid until the next advance."""

    def __init__(self):
        self._epoch = 0

    @property
    def current(self) -> int:
        return self._epoch

    def advance(self) -> int:
        self._epoch += 1
        return self._epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch
