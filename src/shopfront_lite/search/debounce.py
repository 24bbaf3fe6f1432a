"""Request sequencing for debounced, possibly overlapping search calls."""

from __future__ import annotations

import asyncio


class RequestSequencer:
    """Hands out increasing sequence numbers; only the newest one is current.

    Callers take a number before searching and apply the response only if the
    number is still current, so a slow earlier search can never overwrite a
    newer one. ``wait_quiet`` implements the debounce: after the quiet period
    the request proceeds only if nothing newer arrived meanwhile.
    """

    def __init__(self, quiet_period: float = 0.3) -> None:
        self.quiet_period = quiet_period
        self._seq = 0

    @property
    def latest(self) -> int:
        return self._seq

    def next(self) -> int:
        self._seq += 1
        return self._seq

    def is_current(self, seq: int) -> bool:
        return seq == self._seq

    async def wait_quiet(self, seq: int) -> bool:
        """Sleep for the quiet period. True if ``seq`` is still the newest request."""
        await asyncio.sleep(self.quiet_period)
        return self.is_current(seq)
