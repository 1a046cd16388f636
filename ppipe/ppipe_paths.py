"""
Parsing and resolution of placeholder paths.

A path is a tuple of segments (see ppipe_datatypes). Resolution walks the
segments against a value and copes with awaitables appearing at any depth:
the part of the path after an awaitable is resolved once it settles, and the
whole resolution then becomes awaitable too.
"""

import collections.abc
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from koine import Parser

from ppipe.ppipe_datatypes import (
    Name, Index, Invoke, PathSegment, Placeholder, PathSyntaxError, MISSING
)
from ppipe.ppipe_settle import Settlement, is_pending
from ppipe.ppipe_transformer import PathTransformer

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "placeholder_path.yaml"


class PathParser:
    """Parses textual paths such as `user.name` or `rows[-1].keys()`."""

    _parser: Optional[Parser] = None
    _transformer: Optional[PathTransformer] = None

    def __init__(self):
        if PathParser._parser is None:
            logger.debug("compiling placeholder path grammar from %s", GRAMMAR_PATH)
            PathParser._parser = Parser.from_file(str(GRAMMAR_PATH))
        if PathParser._transformer is None:
            PathParser._transformer = PathTransformer()
        self.parser = PathParser._parser
        self.transformer = PathParser._transformer

    def parse(self, text: str) -> tuple:
        text = text.strip()
        if not text:
            return ()
        parse_out = self.parser.parse(text)
        if parse_out.get('status') != 'success':
            raise PathSyntaxError(text, parse_out.get('message') or str(parse_out))
        return self.transformer.transform(parse_out['ast'])


def parse_path(text: str) -> tuple:
    return PathParser().parse(text)


def placeholder(text: str = "") -> Placeholder:
    """Builds a placeholder from a textual path; `placeholder("a.b")` is `_.a.b`."""
    return Placeholder(parse_path(text))


# =================================================================
# Resolution
# =================================================================

def get_member(target: Any, name: str) -> Any:
    """Reads `name` from a mapping key or an attribute; MISSING when neither exists."""
    if isinstance(target, collections.abc.Mapping):
        try:
            return target[name]
        except KeyError:
            pass
        except TypeError:
            # Unhashable-key mappings and the like
            pass
    return getattr(target, name, MISSING)


def read_segment(target: Any, segment: PathSegment) -> Any:
    if target is MISSING:
        return MISSING
    if isinstance(segment, Name):
        return get_member(target, segment.text)
    if isinstance(segment, Index):
        try:
            return target[segment.key]
        except (LookupError, TypeError):
            return MISSING
    if segment is Invoke:
        return target() if callable(target) else target
    raise TypeError(f"Unknown path segment: {segment!r}")


def _shared(pending: Any, cache: Optional[Dict[int, tuple]]) -> Any:
    """Returns one Settlement per distinct awaitable within a resolution scope.

    A coroutine can only be awaited once, so placeholders of the same call
    that reach the same awaitable must all wait on one Settlement.
    """
    if cache is None:
        return pending
    entry = cache.get(id(pending))
    if entry is None:
        # The awaitable is kept alive so its id cannot be reused.
        entry = cache[id(pending)] = (pending, Settlement.of(pending))
    return entry[1]


def resolve_path(value: Any, segments: Iterable[PathSegment],
                 cache: Optional[Dict[int, tuple]] = None) -> Any:
    """Resolves a path against `value`.

    Returns the resolved value, `None` for an absent segment, or an awaitable
    when an awaitable was met along the way. An empty path returns `value`
    unchanged. Resolutions sharing a `cache` settle each awaitable they meet
    only once.
    """
    segments = tuple(segments)
    if not segments:
        return value
    current = value
    for i, segment in enumerate(segments):
        if is_pending(current):
            return _resolve_after(_shared(current, cache), segments[i:], cache)
        current = read_segment(current, segment)
        if current is MISSING:
            return None
    if is_pending(current):
        return _resolve_after(_shared(current, cache), (), cache)
    return current


async def _resolve_after(pending: Any, segments: tuple,
                         cache: Optional[Dict[int, tuple]]) -> Any:
    value = await pending
    while is_pending(value):
        value = await _shared(value, cache)
    result = resolve_path(value, segments, cache)
    if is_pending(result):
        result = await result
    return result


def resolve(marker: Placeholder, value: Any,
            cache: Optional[Dict[int, tuple]] = None) -> Any:
    """Resolves a placeholder against the current chain value."""
    return resolve_path(value, marker._segments, cache)
