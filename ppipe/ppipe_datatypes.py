"""
Defines the core data types for the ppipe runtime.

This module provides the placeholder marker and its path segments, the three
chain states a pipe can be in, and the exceptions raised by the library.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Any, Tuple


# =================================================================
# Exceptions
# =================================================================

class PpipeError(Exception):
    """Base class for errors raised by ppipe itself."""
    pass


class PipeUsageError(PpipeError, TypeError):
    """A pipe was driven with arguments it cannot interpret as a step."""
    pass


class MissingMemberError(PpipeError, AttributeError):
    def __init__(self, name: str, target: Any = None):
        super().__init__(f"'{name}' is not defined on {target!r}")
        self.name = name
        self.target = target


class PathSyntaxError(PpipeError, ValueError):
    def __init__(self, text: str, message: str):
        super().__init__(f"invalid placeholder path {text!r}: {message}")
        self.text = text
        self.message = message


# =================================================================
# Path Segment Types
# =================================================================

class PathSegment(ABC):
    """Abstract base class for all components of a placeholder path."""
    pass


class Name(PathSegment):
    """A member segment, e.g. 'user' in `_.user`."""
    def __init__(self, text: str):
        self.text = text

    def __repr__(self) -> str:
        return f"Name<{self.text!r}>"

    def __eq__(self, other):
        return isinstance(other, Name) and self.text == other.text

    def __hash__(self):
        return hash(("name", self.text))


class Index(PathSegment):
    """A subscript segment, e.g. `[0]` or `['key']`."""
    def __init__(self, key: Any):
        self.key = key

    def __repr__(self) -> str:
        return f"Index({self.key!r})"

    def __eq__(self, other):
        return isinstance(other, Index) and type(self.key) is type(other.key) and self.key == other.key

    def __hash__(self):
        return hash(("index", type(self.key).__name__, repr(self.key)))


class _SingletonSegment(PathSegment):
    """Internal helper class for creating stateless singleton path segments."""
    def __init__(self, name):
        self._name = name
    def __repr__(self):
        return f"{self._name.capitalize()}<>"

# A zero-argument call of the intermediate value, e.g. `()` in `_.keys()`.
Invoke = _SingletonSegment("invoke")


class _Missing:
    """Marker for a member or path segment that does not exist on its target."""
    def __repr__(self):
        return "Missing<>"

    def __bool__(self):
        return False

MISSING = _Missing()


# =================================================================
# Placeholder
# =================================================================

class Placeholder:
    """Stands in for the current chain value inside a step's arguments.

    Every public attribute name is a path segment, so the marker keeps its own
    state under underscore names only:

        _              the current value
        _.user.name    value.user.name (or value['user']['name'])
        _.rows[0]      value.rows[0]
        _.keys()       value.keys()
        *_.rows        the elements of value.rows, spliced into the call
    """
    def __init__(self, segments: Tuple[PathSegment, ...] = (), expand: bool = False):
        self._segments = tuple(segments)
        self._expand = expand

    def _extend(self, segment: PathSegment) -> 'Placeholder':
        if self._expand:
            raise PipeUsageError("an expanded placeholder cannot be extended")
        return Placeholder(self._segments + (segment,))

    def __getattr__(self, name: str) -> 'Placeholder':
        if name.startswith("_"):
            raise AttributeError(name)
        return self._extend(Name(name))

    def __getitem__(self, key: Any) -> 'Placeholder':
        return self._extend(Index(key))

    def __call__(self, *args, **kwargs) -> 'Placeholder':
        if args or kwargs:
            raise PipeUsageError("placeholder calls take no arguments")
        return self._extend(Invoke)

    def __iter__(self):
        # `fn(*_.rows)` unpacks the placeholder into a single expansion marker.
        yield Placeholder(self._segments, expand=True)

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)

    def __eq__(self, other):
        if not isinstance(other, Placeholder):
            return NotImplemented
        return self._segments == other._segments and self._expand == other._expand

    def __hash__(self):
        return hash((self._segments, self._expand))


def is_placeholder(value: Any) -> bool:
    return isinstance(value, Placeholder)


def spread(value: Placeholder) -> Placeholder:
    """Returns the expansion form of a placeholder; same as `*value` in a call."""
    if not isinstance(value, Placeholder):
        raise PipeUsageError(f"spread expects a placeholder, got {value!r}")
    return Placeholder(value._segments, expand=True)


# The bare placeholder.
_ = Placeholder()


# =================================================================
# Chain States
# =================================================================

@dataclass(frozen=True)
class Settled:
    """A chain holding a plain value."""
    value: Any

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)


@dataclass(frozen=True)
class Pending:
    """A chain whose value is still being computed by a Settlement."""
    settlement: Any

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)


@dataclass(frozen=True)
class Faulted:
    """A chain that captured an error; no later step runs."""
    error: BaseException

    def __repr__(self) -> str:
        from ppipe.ppipe_printer import Printer
        return Printer().pformat(self)
