"""
A pretty-printer for ppipe data structures.
"""

from ppipe.ppipe_datatypes import (
    Placeholder, Name, Index, Invoke, Settled, Pending, Faulted, MISSING
)


class Printer:
    """Formats ppipe objects into short, readable strings."""

    def __init__(self, max_width=60):
        self._max_width = max_width
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        # Fast path for singletons
        if obj is Invoke: return self._pformat_invoke
        if obj is MISSING: return lambda o: "missing"

        from ppipe.ppipe_settle import Outcome, Settlement
        from ppipe.ppipe_chain import Pipe
        if isinstance(obj, Outcome): return self._pformat_outcome
        if isinstance(obj, Settlement): return self._pformat_settlement
        if isinstance(obj, Pipe): return self._pformat_pipe

        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Default to Python's repr for unknown types
        return self._pformat_value

    def _create_handlers(self):
        return {
            Placeholder: self._pformat_placeholder,
            Name: self._pformat_name,
            Index: self._pformat_index,
            Settled: self._pformat_settled,
            Pending: self._pformat_pending,
            Faulted: self._pformat_faulted,
        }

    def _pformat_value(self, obj):
        text = repr(obj)
        if len(text) > self._max_width:
            text = text[:self._max_width - 3] + "..."
        return text

    # --- Paths ---

    def _pformat_placeholder(self, obj):
        segments = "".join(self.pformat(s) for s in obj._segments)
        prefix = "*" if obj._expand else ""
        return f"{prefix}_{segments}"

    def _pformat_name(self, obj):
        return f".{obj.text}"

    def _pformat_index(self, obj):
        return f"[{obj.key!r}]"

    def _pformat_invoke(self, obj):
        return "()"

    # --- States ---

    def _pformat_settled(self, obj):
        return f"Settled({self._pformat_value(obj.value)})"

    def _pformat_pending(self, obj):
        return f"Pending({self.pformat(obj.settlement)})"

    def _pformat_faulted(self, obj):
        return f"Faulted({obj.error!r})"

    def _pformat_outcome(self, obj):
        if obj.ok:
            return f"Outcome(success, {self._pformat_value(obj.value)})"
        return f"Outcome(error, {obj.format_error()})"

    def _pformat_settlement(self, obj):
        if obj._outcome is not None:
            return f"<Settlement {self.pformat(obj._outcome)}>"
        if obj._task is None:
            return "<Settlement waiting>"
        return "<Settlement done>" if obj._task.done() else "<Settlement running>"

    def _pformat_pipe(self, obj):
        text = f"<Pipe {self.pformat(obj._state)}"
        if obj._context is not None:
            text += f" with {self._pformat_value(obj._context)}"
        return text + ">"
