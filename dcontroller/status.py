"""Error stack and status reporting for controllers."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone

from .api import (
    Condition,
    ConditionStatus,
    ControllerConditionReason,
    ControllerConditionType,
    ControllerStatus,
)

ERROR_REPORTER_STACK_SIZE = 10
TRIM_PREFIX_SUFFIX_LEN = 120


class Sometimes:
    """Run an action only some of the times it is asked for.

    The action runs on the first call, on each of the first ``first`` calls,
    on every ``every``-th call, and whenever ``interval`` seconds have passed
    since it last ran.
    """

    def __init__(self, first: int = 0, every: int = 0, interval: float = 0.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.first = first
        self.every = every
        self.interval = interval
        self._clock = clock
        self._count = 0
        self._last: float | None = None
        self._lock = threading.Lock()

    def do(self, fn: Callable[[], None]) -> None:
        with self._lock:
            now = self._clock()
            if (self._count == 0
                    or (self.first > 0 and self._count < self.first)
                    or (self.every > 0 and self._count % self.every == 0)
                    or (self.interval > 0
                        and (self._last is None or now - self._last >= self.interval))):
                fn()
                self._last = self._clock()
            self._count += 1


def _default_rate_limiter() -> Sometimes:
    # The first 3 errors are reported, then at most one per 2 seconds.
    return Sometimes(first=3, interval=2.0)


def trim(s: str) -> str:
    """Shorten a long string, keeping its beginning and end."""
    if len(s) <= 2 * TRIM_PREFIX_SUFFIX_LEN + 5:
        return s
    return s[:TRIM_PREFIX_SUFFIX_LEN - 1] + "[...]" + s[-TRIM_PREFIX_SUFFIX_LEN:]


class ErrorReporter:
    """A bounded stack of the most recent errors of a controller."""

    def __init__(self, on_error: Callable[[BaseException], None] | None = None,
                 rate_limiter: Sometimes | None = None) -> None:
        self._stack: deque[BaseException] = deque(maxlen=ERROR_REPORTER_STACK_SIZE)
        self._on_error = on_error
        self._rate_limiter = rate_limiter if rate_limiter is not None else _default_rate_limiter()
        self._critical = False

    def push_error(self, err: BaseException) -> BaseException:
        return self.push(err, False)

    def push_critical_error(self, err: BaseException) -> BaseException:
        return self.push(err, True)

    def push(self, err: BaseException, critical: bool) -> BaseException:
        """Record an error, dropping the oldest once the stack is full."""
        if critical:
            self._critical = True
        self._stack.append(err)
        if self._on_error is not None:
            sink = self._on_error
            self._rate_limiter.do(lambda: sink(err))
        else:
            self._rate_limiter.do(lambda: None)
        return err

    def pop(self) -> None:
        if self._stack:
            self._stack.pop()

    def top(self) -> BaseException | None:
        return self._stack[-1] if self._stack else None

    def __len__(self) -> int:
        return len(self._stack)

    def is_empty(self) -> bool:
        return not self._stack

    def is_critical(self) -> bool:
        return self._critical

    def report(self) -> list[str]:
        return [trim(str(err)) for err in self._stack]

    def __str__(self) -> str:
        return ",".join(self.report())


def controller_status(name: str, reporter: ErrorReporter, generation: int) -> ControllerStatus:
    """Summarise the state of a controller from its error stack."""
    now = datetime.now(timezone.utc)
    if reporter.is_empty():
        status, reason, message = (ConditionStatus.TRUE, ControllerConditionReason.READY,
                                   "Controller is up and running")
    elif reporter.is_critical():
        status, reason, message = (ConditionStatus.FALSE, ControllerConditionReason.NOT_READY,
                                   "Controller failed to start due to a critcal error")
    else:
        status, reason, message = (
            ConditionStatus.UNKNOWN, ControllerConditionReason.RECONCILIATION_FAILED,
            "Controller seems functional but there were reconciliation errors")
    condition = Condition(
        type=ControllerConditionType.READY.value,
        status=status,
        reason=reason.value,
        message=message,
        observed_generation=generation,
        last_transition_time=now,
    )
    return ControllerStatus(name=name, conditions=[condition], last_errors=reporter.report())