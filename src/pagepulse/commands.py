# src/pagepulse/commands.py
"""Bounded buffer of collector calls made before the collector is ready.

Hosts often start tracking before configuration is available. Calls made
in that window are recorded here and replayed, in order, once the
collector starts. The buffer is finite: on overflow the oldest command is
dropped.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Command:
    """A recorded method call."""

    method: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class CommandBuffer:
    """Ring buffer of pending commands that drops oldest on overflow.

    NOTE: Logs every _LOG_INTERVAL drops instead of per-command.

    Thread Safety:
        NOT thread-safe. The Collector serializes access.

    Example:
        buffer = CommandBuffer(max_size=100)
        buffer.push("track", "signup", {"plan": "pro"})
        buffer.replay(collector)
    """

    _LOG_INTERVAL = 100

    def __init__(self, max_size: int = 100) -> None:
        """Initialize the buffer.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._commands: deque[Command] = deque(maxlen=max_size)
        self._dropped_count = 0
        self._last_logged_drop_count = 0

    def push(self, method: str, *args: Any, **kwargs: Any) -> None:
        """Record a call, evicting the oldest one if full."""
        was_full = len(self._commands) == self._commands.maxlen
        self._commands.append(Command(method=method, args=args, kwargs=kwargs))
        if was_full:
            self._dropped_count += 1
            if self._dropped_count == 1 or self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
                logger.warning(
                    "Command buffer overflow - oldest commands dropped",
                    dropped_total=self._dropped_count,
                    buffer_size=self._commands.maxlen,
                )
                self._last_logged_drop_count = self._dropped_count

    def replay(self, target: object) -> int:
        """Invoke every buffered command on target, oldest first, then clear.

        A failing command is logged and skipped; the rest still run.

        Returns:
            Number of commands that ran without raising.
        """
        commands = list(self._commands)
        self._commands.clear()
        succeeded = 0
        for command in commands:
            try:
                getattr(target, command.method)(*command.args, **command.kwargs)
            except Exception as e:
                logger.error("Buffered command failed on replay", method=command.method, error=str(e))
                continue
            succeeded += 1
        return succeeded

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._commands)
