"""
Statement tokenizer and binder.

The engine has no native parameter binding, so ``?`` placeholders are
replaced by literal SQL before execution.  Parsing splits the statement text
into literal-text and placeholder nodes once; binding walks the nodes and
splices in ``Value.sql()`` for each placeholder, left to right.

Manifesto:
    - **Quotes are opaque:** ``?`` inside ``'...'`` or ``"..."`` is text
    - **Doubled quotes stay inside:** ``''`` in a literal is an escaped quote,
      not the end of the literal
    - **Arity is checked before rendering:** a count mismatch fails without
      touching the engine (no blob handles are created)

Architecture:
    ::

        "SELECT ? FROM t WHERE b = 'What?' AND c = ?"
                         │ parse()  (memoized per SQL text)
                         ▼
        [Text("SELECT "), Placeholder, Text(" FROM t WHERE b = 'What?' AND c = "), Placeholder]
                         │ bind([Value.text("x"), Value.integer(7)], conn)
                         ▼
        "SELECT 'x' FROM t WHERE b = 'What?' AND c = 7"

    Scanner states::

        PLAIN ──'──► LITERAL ──'──► QUOTE_SEEN ──'──► LITERAL
          │  ▲                          │
          │  └──────── other ───────────┘  (character rescanned as PLAIN)
          └──"──► IDENTIFIER ──"──► PLAIN

Examples:
    >>> statement = Statement("SELECT a FROM t WHERE b = 'What?' OR c = ?")
    >>> statement.placeholder_count
    1
    >>> statement.bind([Value.integer(7)])
    "SELECT a FROM t WHERE b = 'What?' OR c = 7"

Tags:
    sql, tokenizer, binder, placeholders, injection-safety, fbspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from fbspine.convert import to_value
from fbspine.errors import BindingArityError
from fbspine.values import Value

if TYPE_CHECKING:
    from fbspine.connection import Connection


class NodeKind(str, Enum):
    TEXT = "text"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class StatementNode:
    """A run of literal statement text, or one ``?`` placeholder."""

    kind: NodeKind
    text: str = ""

    @classmethod
    def literal(cls, text: str) -> StatementNode:
        return cls(NodeKind.TEXT, text)

    @property
    def is_placeholder(self) -> bool:
        return self.kind is NodeKind.PLACEHOLDER

    def __str__(self) -> str:
        return "?" if self.is_placeholder else self.text


PLACEHOLDER = StatementNode(NodeKind.PLACEHOLDER)


class _State(Enum):
    PLAIN = "plain"
    LITERAL = "literal"
    QUOTE_SEEN = "quote_seen"
    IDENTIFIER = "identifier"


@lru_cache(maxsize=512)
def parse(sql: str) -> tuple[StatementNode, ...]:
    """Split ``sql`` into text and placeholder nodes."""
    nodes: list[StatementNode] = []
    state = _State.PLAIN
    start = 0

    for index, character in enumerate(sql):
        if state is _State.QUOTE_SEEN:
            if character == "'":
                state = _State.LITERAL
                continue
            state = _State.PLAIN

        if state is _State.PLAIN:
            if character == "'":
                state = _State.LITERAL
            elif character == '"':
                state = _State.IDENTIFIER
            elif character == "?":
                if start < index:
                    nodes.append(StatementNode.literal(sql[start:index]))
                nodes.append(PLACEHOLDER)
                start = index + 1
        elif state is _State.LITERAL:
            if character == "'":
                state = _State.QUOTE_SEEN
        elif character == '"':
            state = _State.PLAIN

    if start < len(sql):
        nodes.append(StatementNode.literal(sql[start:]))

    return tuple(nodes)


class Statement:
    """A parsed statement that can be bound to values.

    ``sql`` holds the most recent bound text; binding again re-runs the
    binder over the same parsed nodes.
    """

    def __init__(self, query: str):
        self.query = query
        self.nodes = parse(query)
        self.placeholder_count = sum(1 for node in self.nodes if node.is_placeholder)
        self.sql: str | None = None

    def bind(self, values: Sequence[Any] = (), connection: Connection | None = None) -> str:
        """Substitute ``values`` for the placeholders and cache the result.

        Values that are not already :class:`Value` instances are converted
        with :func:`fbspine.convert.to_value`.

        Raises:
            BindingArityError: Placeholder and value counts differ.
            BindError: A value has no literal form.
            BlobCreationError: A blob handle could not be created.
        """
        if len(values) != self.placeholder_count:
            raise BindingArityError(self.placeholder_count, len(values))

        pending = iter(values)
        parts: list[str] = []
        for node in self.nodes:
            if node.is_placeholder:
                value = next(pending)
                if not isinstance(value, Value):
                    value = to_value(value)
                parts.append(value.sql(connection))
            else:
                parts.append(node.text)

        self.sql = "".join(parts)
        return self.sql

    def __repr__(self) -> str:
        return f"Statement({self.query!r}, placeholders={self.placeholder_count})"


__all__ = [
    "NodeKind",
    "PLACEHOLDER",
    "Statement",
    "StatementNode",
    "parse",
]
