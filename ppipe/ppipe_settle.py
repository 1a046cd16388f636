"""
Settlement tracking: turns "a value or an awaitable" into a future that always
settles with a tagged Outcome instead of raising.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional, Union

logger = logging.getLogger(__name__)


def is_pending(value: Any) -> bool:
    """A value is pending when it can be awaited."""
    return inspect.isawaitable(value)


async def flatten(value: Any) -> Any:
    """Awaits until the result is no longer awaitable."""
    while is_pending(value):
        value = await value
    return value


@dataclass(frozen=True)
class Outcome:
    """The settled result of a pending value."""
    status: Literal['success', 'error']
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any) -> 'Outcome':
        return cls('success', value=value)

    @classmethod
    def failure(cls, error: BaseException) -> 'Outcome':
        return cls('error', error=error)

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    def unwrap(self) -> Any:
        """Returns the value, or raises the captured error."""
        if not self.ok:
            raise self.error
        return self.value

    def format_error(self) -> str:
        if self.ok:
            return ""
        return f"{type(self.error).__name__}: {self.error}"

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)


async def settle(value: Any) -> Outcome:
    """Awaits a value (flattening nested awaitables) and tags the result."""
    try:
        result = await flatten(value)
    except Exception as e:
        return Outcome.failure(e)
    return Outcome.success(result)


class Settlement:
    """A future over an Outcome.

    The producer coroutine is created and run exactly once: immediately when
    an event loop is running, otherwise on the first await. Awaiting a
    Settlement returns the value or raises the error; `outcome()` never raises
    for a failed value.
    """
    def __init__(self, producer: Optional[Callable[[], Awaitable[Outcome]]] = None,
                 outcome: Optional[Outcome] = None):
        if producer is None and outcome is None:
            raise ValueError("Settlement needs a producer or an outcome")
        self._producer = producer
        self._outcome = outcome
        self._task: Optional[asyncio.Future] = None
        if outcome is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._start(loop)

    @classmethod
    def completed(cls, outcome: Outcome) -> 'Settlement':
        return cls(outcome=outcome)

    @classmethod
    def of(cls, value: Any) -> 'Settlement':
        """Wraps any value; awaitables are settled, plain values are already done."""
        if is_pending(value):
            return cls(lambda: settle(value))
        return cls.completed(Outcome.success(value))

    def _start(self, loop: asyncio.AbstractEventLoop):
        producer, self._producer = self._producer, None
        self._task = loop.create_task(producer())

    @property
    def done(self) -> bool:
        if self._outcome is not None:
            return True
        return self._task is not None and self._task.done()

    async def outcome(self) -> Outcome:
        if self._outcome is not None:
            return self._outcome
        if self._task is None:
            self._start(asyncio.get_running_loop())
        outcome = await self._task
        self._outcome = outcome
        return outcome

    def continue_with(self, step: Callable[[Any], Any]) -> 'Settlement':
        """Schedules `step(value)` after a successful settlement.

        `step` may return a plain value, an awaitable, or an Outcome. A failed
        settlement is forwarded without calling `step`.
        """
        async def producer() -> Outcome:
            outcome = await self.outcome()
            if not outcome.ok:
                return outcome
            try:
                result = step(outcome.value)
            except Exception as e:
                return Outcome.failure(e)
            if isinstance(result, Outcome):
                return result
            if isinstance(result, Settlement):
                return await result.outcome()
            return await settle(result)
        return Settlement(producer)

    async def _result(self) -> Any:
        return (await self.outcome()).unwrap()

    def __await__(self):
        return self._result().__await__()

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)


def normalize(value: Any) -> Union[Outcome, Settlement]:
    """Classifies a value: an Outcome when it is plain, a Settlement when pending."""
    if is_pending(value):
        return Settlement.of(value)
    return Outcome.success(value)


def react(outcome: Outcome, on_success: Optional[Callable] = None,
          on_failure: Optional[Callable] = None) -> Settlement:
    """Runs the callback matching `outcome` and settles whatever it returns."""
    handler = on_success if outcome.ok else on_failure
    if handler is None:
        return Settlement.completed(outcome)
    try:
        result = handler(outcome.value if outcome.ok else outcome.error)
    except Exception as e:
        logger.debug("callback %r raised %r", handler, e)
        return Settlement.completed(Outcome.failure(e))
    return Settlement.of(result)


def react_later(settlement: Settlement, on_success: Optional[Callable] = None,
                on_failure: Optional[Callable] = None) -> Settlement:
    """Like `react`, once `settlement` has finished."""
    async def producer() -> Outcome:
        outcome = await settlement.outcome()
        return await react(outcome, on_success, on_failure).outcome()
    return Settlement(producer)
