"""
Transforms the raw koine AST of a placeholder path into path segments.
"""

from ppipe.ppipe_datatypes import Name, Index, Invoke, PathSegment


class PathTransformer:
    """Walks a parsed path and emits its segments in source order.

    The grammar promotes every structural rule, so only the leaves matter:
    `name` and `call` come from member access, `number`, `string` and `key`
    from a bracketed index.
    """
    def transform(self, node: object) -> tuple:
        return tuple(self._walk(node))

    def _walk(self, node):
        if isinstance(node, list):
            for item in node:
                yield from self._walk(item)
            return
        if not isinstance(node, dict):
            return
        if 'tag' not in node:
            # Named-children dicts
            for value in node.values():
                yield from self._walk(value)
            return
        segment = self._leaf(node)
        if segment is not None:
            yield segment
            return
        yield from self._walk(node.get('children', []))

    def _leaf(self, node: dict) -> PathSegment | None:
        match node.get('tag'):
            case 'name':
                return Name(node['text'])
            case 'call':
                return Invoke
            case 'number':
                return Index(node.get('value', int(node['text'])))
            case 'string':
                return Index(node['text'][1:-1])
            case 'key':
                return Index(node['text'])
            case _:
                return None
