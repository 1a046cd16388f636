"""
The step executor: applies one function call to a chain state.
"""

import collections.abc
import logging
from typing import Any, Callable, Dict, Optional, Sequence, Union

from ppipe.ppipe_datatypes import (
    Settled, Pending, Faulted, Placeholder, PipeUsageError
)
from ppipe.ppipe_paths import resolve
from ppipe.ppipe_settle import Outcome, Settlement, is_pending, normalize

logger = logging.getLogger(__name__)

ChainState = Union[Settled, Pending, Faulted]


def passthrough(value: Any) -> Any:
    """The step used when a lone placeholder is piped: `pipe(_.user.name)`."""
    return value


def state_from_value(value: Any) -> ChainState:
    """Classifies a value into the chain state that holds it."""
    outcome = normalize(value)
    if isinstance(outcome, Settlement):
        return Pending(outcome)
    return Settled(outcome.value)


def state_outcome(state: ChainState) -> Union[Outcome, Settlement]:
    """The Outcome of a finished state, or the Settlement of a pending one."""
    if isinstance(state, Faulted):
        return Outcome.failure(state.error)
    if isinstance(state, Pending):
        return state.settlement
    return Outcome.success(state.value)


# =================================================================
# Argument resolution
# =================================================================

def has_placeholder(params: Sequence[Any], kwargs: Dict[str, Any]) -> bool:
    return any(isinstance(p, Placeholder) for p in params) or \
           any(isinstance(v, Placeholder) for v in kwargs.values())


def _splice(params, kwargs, positional, keyword):
    args = list(params)
    # Right to left, so that expanding one slot does not shift the
    # indexes of the slots still to be replaced.
    for i, marker, resolved in reversed(positional):
        if marker._expand:
            if not isinstance(resolved, collections.abc.Iterable):
                raise TypeError(f"expanded placeholder must resolve to a sequence, got {resolved!r}")
            args[i:i + 1] = list(resolved)
        else:
            args[i] = resolved
    kw = dict(kwargs)
    for name, _marker, resolved in keyword:
        kw[name] = resolved
    return args, kw


async def _splice_later(params, kwargs, positional, keyword):
    positional = [(i, m, await r if is_pending(r) else r) for i, m, r in positional]
    keyword = [(k, m, await r if is_pending(r) else r) for k, m, r in keyword]
    return _splice(params, kwargs, positional, keyword)


def build_arguments(params: Sequence[Any], kwargs: Dict[str, Any], value: Any,
                    append_value: bool = True):
    """Replaces placeholders in a call's arguments with `value`.

    Returns `(args, kwargs)`, or an awaitable of it when a placeholder path ran
    into an awaitable. With no placeholder at all, `value` is appended as the
    last positional argument unless `append_value` is false.
    """
    if not has_placeholder(params, kwargs):
        args = list(params)
        if append_value:
            args.append(value)
        return args, dict(kwargs)

    # One cache per call: placeholders reaching the same awaitable share it.
    cache = {}
    positional = [(i, p, resolve(p, value, cache)) for i, p in enumerate(params)
                  if isinstance(p, Placeholder)]
    keyword = [(k, p, resolve(p, value, cache)) for k, p in kwargs.items()
               if isinstance(p, Placeholder)]
    if any(is_pending(r) for _i, _m, r in positional) or \
       any(is_pending(r) for _k, _m, r in keyword):
        return _splice_later(params, kwargs, positional, keyword)
    return _splice(params, kwargs, positional, keyword)


# =================================================================
# Step application
# =================================================================

def check_step(fn: Any, params: Sequence[Any], kwargs: Dict[str, Any]):
    """Validates a step's callable; returns the `(fn, params)` to run."""
    if isinstance(fn, Placeholder):
        if params or kwargs:
            raise PipeUsageError("a placeholder step takes no further arguments")
        return passthrough, (fn,)
    if not callable(fn):
        raise PipeUsageError("first argument to a step must be a function or a single placeholder")
    return fn, tuple(params)


def call_step(fn: Callable, params: Sequence[Any], kwargs: Dict[str, Any], value: Any,
              append_value: bool = True) -> ChainState:
    """Runs one step against a settled value and reports its outcome as a state."""
    try:
        arguments = build_arguments(params, kwargs, value, append_value)
        if is_pending(arguments):
            return Pending(Settlement.of(_call_later(fn, arguments)))
        args, kw = arguments
        result = fn(*args, **kw)
    except Exception as e:
        logger.debug("step %r raised %r; chain is faulted", fn, e)
        return Faulted(e)
    return state_from_value(result)


async def _call_later(fn, arguments):
    args, kw = await arguments
    return fn(*args, **kw)


def apply_step(state: ChainState, fn: Any, params: Sequence[Any] = (),
               kwargs: Optional[Dict[str, Any]] = None,
               append_value: bool = True) -> ChainState:
    """Applies `fn(*params, **kwargs)` to the value held by `state`.

    A faulted state short-circuits. A pending state defers the whole step
    until its settlement finishes.
    """
    if isinstance(state, Faulted):
        return Faulted(state.error)
    kwargs = kwargs or {}
    fn, params = check_step(fn, params, kwargs)
    if isinstance(state, Pending):
        return Pending(state.settlement.continue_with(
            lambda value: state_outcome(call_step(fn, params, kwargs, value, append_value))
        ))
    return call_step(fn, params, kwargs, state.value, append_value)
