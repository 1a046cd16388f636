"""
ppipe: pipe a value through function calls, sync or async, with placeholders.

    from ppipe import ppipe, _

    ppipe(5)(add, _, 3)()                       # 8
    await ppipe(fetch_user(1)).pipe(_.name)     # awaitables are followed
"""

from ppipe.ppipe_datatypes import (
    Placeholder, is_placeholder, spread, _,
    PpipeError, PipeUsageError, MissingMemberError, PathSyntaxError,
)
from ppipe.ppipe_paths import placeholder, parse_path
from ppipe.ppipe_settle import Outcome, Settlement
from ppipe.ppipe_chain import Pipe, PipeFactory, ppipe

__all__ = [
    "ppipe", "_", "Pipe", "PipeFactory", "Placeholder", "is_placeholder",
    "spread", "placeholder", "parse_path", "Outcome", "Settlement",
    "PpipeError", "PipeUsageError", "MissingMemberError", "PathSyntaxError",
]
