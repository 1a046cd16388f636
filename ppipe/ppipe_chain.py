"""
The chain proxy (Pipe), dynamic member dispatch, and the pipe factory.
"""

import functools
import logging
import collections.abc
import types
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from ppipe.ppipe_datatypes import (
    Settled, Pending, Faulted, MissingMemberError, PipeUsageError, MISSING, _
)
from ppipe.ppipe_paths import get_member
from ppipe.ppipe_settle import Settlement, react, react_later
from ppipe.ppipe_step import ChainState, apply_step, state_from_value, state_outcome

logger = logging.getLogger(__name__)

_EMPTY_TABLE: Mapping[str, Callable] = types.MappingProxyType({})


# =================================================================
# Member dispatch
# =================================================================

class MemberKind(Enum):
    CONTEXT = "context"
    VALUE = "value"
    EXTENSION = "extension"
    MISSING = "missing"


@dataclass(frozen=True)
class Member:
    kind: MemberKind
    handler: Any = None


def resolve_member(name: str, value: Any, context: Any = None,
                   extensions: Mapping[str, Callable] = _EMPTY_TABLE) -> Member:
    """Decides where a dynamic member `name` comes from.

    A callable on the bound context wins, then anything the value itself
    exposes (callable or not), then a registered extension.
    """
    if context is not None:
        handler = get_member(context, name)
        if handler is not MISSING and callable(handler):
            return Member(MemberKind.CONTEXT, handler)
    handler = get_member(value, name)
    if handler is not MISSING:
        return Member(MemberKind.VALUE, handler)
    handler = extensions.get(name)
    if callable(handler):
        return Member(MemberKind.EXTENSION, handler)
    logger.debug("no member %r on %r", name, value)
    return Member(MemberKind.MISSING)


def dispatch_member(value: Any, name: str, args: tuple, kwargs: dict, context: Any,
                    extensions: Mapping[str, Callable]) -> ChainState:
    """Applies the member step `name(*args, **kwargs)` to a settled value."""
    member = resolve_member(name, value, context, extensions)
    state = Settled(value)
    match member.kind:
        case MemberKind.CONTEXT:
            return apply_step(state, member.handler, args, kwargs)
        case MemberKind.VALUE:
            if not callable(member.handler):
                return state_from_value(member.handler)
            return apply_step(state, member.handler, args, kwargs, append_value=False)
        case MemberKind.EXTENSION:
            handler = functools.partial(member.handler, value)
            return apply_step(state, handler, args, kwargs, append_value=False)
        case _:
            raise MissingMemberError(name, value)


# =================================================================
# Extension tables
# =================================================================

def build_extension_table(source: Any = None) -> Mapping[str, Callable]:
    """Collects the callable entries of a mapping or a namespace object.

    For a mapping every item counts; for any other object only its own
    attributes (`vars()`) that do not start with an underscore. Non-callable
    entries are skipped.
    """
    if source is None:
        return _EMPTY_TABLE
    if isinstance(source, collections.abc.Mapping):
        items = source.items()
    else:
        items = ((k, v) for k, v in vars(source).items() if not k.startswith('_'))
    table = {}
    for name, handler in items:
        if not isinstance(name, str):
            continue
        if isinstance(handler, (staticmethod, classmethod)):
            handler = handler.__func__
        if not callable(handler):
            logger.debug("ignoring non-callable extension entry %r", name)
            continue
        table[name] = handler
    return types.MappingProxyType(table)


# =================================================================
# Pipe
# =================================================================

class Pipe:
    """One immutable snapshot of a chain.

    Calling the pipe applies a step and returns a new Pipe; calling it with no
    arguments extracts the value. Any public attribute that is not one of the
    accessors below forwards to `get`, so `pipe.upper()` is
    `pipe.get("upper")`.
    """
    def __init__(self, state: ChainState,
                 extensions: Mapping[str, Callable] = _EMPTY_TABLE,
                 context: Any = None):
        self._state = state
        self._extensions = extensions
        self._context = context

    def _next(self, state: ChainState) -> 'Pipe':
        return Pipe(state, self._extensions, self._context)

    def __call__(self, *args, **kwargs):
        if not args:
            if kwargs:
                raise PipeUsageError("a step needs a function before its keyword arguments")
            return self._extract()
        fn, params = args[0], args[1:]
        return self._next(apply_step(self._state, fn, params, kwargs))

    def _extract(self):
        state = self._state
        if isinstance(state, Faulted):
            raise state.error
        if isinstance(state, Pending):
            return state.settlement
        return state.value

    @property
    def pipe(self) -> 'Pipe':
        return self

    @property
    def value(self):
        """The chain's value: raises when faulted, awaitable when pending."""
        return self._extract()

    val = value

    def then(self, on_success: Optional[Callable] = None,
             on_failure: Optional[Callable] = None) -> Settlement:
        state = self._state
        if isinstance(state, Pending):
            return react_later(state.settlement, on_success, on_failure)
        return react(state_outcome(state), on_success, on_failure)

    def catch(self, on_failure: Optional[Callable] = None) -> Settlement:
        return self.then(None, on_failure)

    def with_(self, context: Any) -> 'Pipe':
        """Returns the same chain with member lookups trying `context` first."""
        return Pipe(self._state, self._extensions, context)

    def get(self, name: str, /, *args, **kwargs) -> 'Pipe':
        """Applies the dynamic member `name` as the next step."""
        state = self._state
        if isinstance(state, Faulted):
            return self._next(Faulted(state.error))
        context, extensions = self._context, self._extensions
        if isinstance(state, Pending):
            return self._next(Pending(state.settlement.continue_with(
                lambda value: state_outcome(
                    dispatch_member(value, name, args, kwargs, context, extensions))
            )))
        return self._next(dispatch_member(state.value, name, args, kwargs, context, extensions))

    def __getattr__(self, name: str):
        if name.startswith('_'):
            raise AttributeError(name)
        return functools.partial(self.get, name)

    def __await__(self):
        return self.then().__await__()

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)


# =================================================================
# Factory
# =================================================================

class PipeFactory:
    """Creates pipes that share one extension table.

        ppipe(value)            a new chain
        ppipe._                 the placeholder
        ppipe.extend(table)     a new factory with more extensions
    """
    _ = _

    def __init__(self, extensions: Any = None):
        self._extensions = build_extension_table(extensions)

    def __call__(self, value: Any = None) -> Pipe:
        return Pipe(state_from_value(value), self._extensions)

    @property
    def extensions(self) -> Mapping[str, Callable]:
        return self._extensions

    def extend(self, extensions: Any) -> 'PipeFactory':
        merged = dict(self._extensions)
        merged.update(build_extension_table(extensions))
        return PipeFactory(merged)

    def __repr__(self) -> str:
        return f"<PipeFactory extensions=[{', '.join(self._extensions)}]>"


ppipe = PipeFactory()
