"""Block height sources injected into governance operations."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from chaingov.config import Settings

logger = structlog.get_logger()


class BlockClock(ABC):
    """Monotonic source of the current block height."""

    @abstractmethod
    def current_height(self) -> int:
        ...

    @abstractmethod
    def ensure_at_least(self, height: int) -> int:
        """Never report a height below ``height`` from now on."""


class ManualBlockClock(BlockClock):
    """Height that only moves when told to (tests, development hosts)."""

    def __init__(self, start_height: int = 0):
        if start_height < 0:
            raise ValueError("start height must be non-negative")
        self._height = start_height

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("cannot advance by a negative number of blocks")
        self._height += blocks
        return self._height

    def set_height(self, height: int) -> int:
        if height < self._height:
            raise ValueError(f"height cannot move backwards from {self._height} to {height}")
        self._height = height
        return self._height

    def ensure_at_least(self, height: int) -> int:
        self._height = max(self._height, height)
        return self._height


class IntervalBlockClock(BlockClock):
    """Height derived from wall-clock time elapsed since genesis."""

    def __init__(
        self,
        genesis: datetime,
        block_interval_seconds: int,
        start_height: int = 0,
        now: Optional[Callable[[], datetime]] = None,
    ):
        if block_interval_seconds <= 0:
            raise ValueError("block interval must be positive")
        if genesis.tzinfo is None:
            genesis = genesis.replace(tzinfo=timezone.utc)
        self.genesis = genesis
        self.block_interval_seconds = block_interval_seconds
        self.start_height = start_height
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last_height = start_height

    def current_height(self) -> int:
        elapsed = (self._now() - self.genesis).total_seconds()
        height = self.start_height + max(0, int(elapsed // self.block_interval_seconds))
        # Never report a lower height than before, even if the wall clock steps back
        self._last_height = max(self._last_height, height)
        return self._last_height

    def ensure_at_least(self, height: int) -> int:
        self._last_height = max(self._last_height, height)
        return self.current_height()


def build_block_clock(settings: Settings) -> BlockClock:
    """Create the clock selected by ``settings.clock_mode``."""
    if settings.clock_mode == "manual":
        return ManualBlockClock(settings.clock_start_height)
    if settings.clock_mode == "interval":
        genesis = settings.genesis_timestamp or datetime.now(timezone.utc)
        logger.info(
            "Using interval block clock",
            genesis=genesis.isoformat(),
            block_interval_seconds=settings.block_interval_seconds,
        )
        return IntervalBlockClock(
            genesis=genesis,
            block_interval_seconds=settings.block_interval_seconds,
            start_height=settings.clock_start_height,
        )
    raise ValueError(f"Unknown clock_mode '{settings.clock_mode}'")
