"""Content expressions compiled to deterministic automata over node types.

An expression such as ``"paragraph block*"`` or ``"(table_cell | table_header)+"``
is parsed, turned into an NFA, then into a DFA whose states are
:class:`ContentMatch` objects.  Node types are matched either by name or by
group.
"""

from __future__ import annotations

import re
from collections import deque
from typing import TYPE_CHECKING, Any

from braid.errors import SchemaError
from braid.tree.model import Fragment

if TYPE_CHECKING:
    from braid.tree.schema import NodeType

_TOKEN_RE = re.compile(r"\w+|[^\w\s]")


class ContentMatch:
    """A state in a content automaton.

    ``next`` lists ``(node_type, state)`` edges in the order the expression
    declares them, which makes :attr:`default_type` and the fill searches
    deterministic.
    """

    empty: ContentMatch

    def __init__(self, valid_end: bool) -> None:
        self.valid_end = valid_end
        self.next: list[tuple[NodeType, ContentMatch]] = []
        self._wrap_cache: dict[str, tuple[NodeType, ...] | None] = {}

    @classmethod
    def parse(cls, expr: str, node_types: dict[str, NodeType]) -> ContentMatch:
        stream = _TokenStream(expr, node_types)
        if stream.next is None:
            return cls.empty
        parsed = _parse_expr(stream)
        if stream.next is not None:
            stream.err("Unexpected trailing text")
        return _dfa(_nfa(parsed))

    def match_type(self, type: NodeType) -> ContentMatch | None:
        for edge_type, nxt in self.next:
            if edge_type is type:
                return nxt
        return None

    def match_fragment(
        self, frag: Fragment, start: int = 0, end: int | None = None
    ) -> ContentMatch | None:
        if end is None:
            end = frag.child_count
        cur: ContentMatch | None = self
        i = start
        while cur is not None and i < end:
            cur = cur.match_type(frag.child(i).type)
            i += 1
        return cur

    @property
    def inline_content(self) -> bool:
        return bool(self.next) and self.next[0][0].is_inline

    @property
    def default_type(self) -> NodeType | None:
        """The first type matchable here that can be created without input."""
        for edge_type, _ in self.next:
            if not (edge_type.is_text or edge_type.has_required_attrs()):
                return edge_type
        return None

    @property
    def edge_count(self) -> int:
        return len(self.next)

    def compatible(self, other: ContentMatch) -> bool:
        for type_a, _ in self.next:
            for type_b, _ in other.next:
                if type_a is type_b:
                    return True
        return False

    def fill_before(
        self, after: Fragment, to_end: bool = False, start_index: int = 0
    ) -> Fragment | None:
        """Return the nodes needed before *after* so that it matches here.

        With *to_end*, the fill must also leave the automaton in an
        accepting state after *after*.  Returns ``None`` when no fill exists.
        """
        seen: list[ContentMatch] = [self]

        def search(match: ContentMatch, types: list[NodeType]) -> Fragment | None:
            finished = match.match_fragment(after, start_index)
            if finished is not None and (not to_end or finished.valid_end):
                return Fragment.from_array([t.create_and_fill() for t in types])
            for edge_type, nxt in match.next:
                if not (edge_type.is_text or edge_type.has_required_attrs()) and not any(
                    nxt is s for s in seen
                ):
                    seen.append(nxt)
                    found = search(nxt, types + [edge_type])
                    if found is not None:
                        return found
            return None

        return search(self, [])

    def find_wrapping(self, target: NodeType) -> tuple[NodeType, ...] | None:
        """Return the shortest chain of wrapper types that lets *target* appear here.

        An empty tuple means *target* fits directly; ``None`` means no
        wrapping exists.
        """
        if target.name not in self._wrap_cache:
            self._wrap_cache[target.name] = self._compute_wrapping(target)
        return self._wrap_cache[target.name]

    def _compute_wrapping(self, target: NodeType) -> tuple[NodeType, ...] | None:
        seen: set[str] = set()
        # (match, type, via)
        active: deque[tuple[ContentMatch, Any, Any]] = deque([(self, None, None)])
        while active:
            current = active.popleft()
            match = current[0]
            if match.match_type(target) is not None:
                result = []
                obj = current
                while obj[1] is not None:
                    result.append(obj[1])
                    obj = obj[2]
                return tuple(reversed(result))
            for edge_type, nxt in match.next:
                if (
                    not edge_type.is_leaf
                    and not edge_type.has_required_attrs()
                    and edge_type.name not in seen
                    and (current[1] is None or nxt.valid_end)
                ):
                    active.append((edge_type.content_match, edge_type, current))
                    seen.add(edge_type.name)
        return None

    def __repr__(self) -> str:
        edges = ", ".join(t.name for t, _ in self.next)
        return f"<ContentMatch{' *' if self.valid_end else ''} [{edges}]>"


ContentMatch.empty = ContentMatch(True)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class _TokenStream:
    def __init__(self, string: str, node_types: dict[str, NodeType]) -> None:
        self.string = string
        self.node_types = node_types
        self.tokens = _TOKEN_RE.findall(string)
        self.pos = 0

    @property
    def next(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def eat(self, tok: str) -> bool:
        if self.next == tok:
            self.pos += 1
            return True
        return False

    def err(self, msg: str) -> None:
        raise SchemaError(f"{msg} (in content expression '{self.string}')")


def _parse_expr(stream: _TokenStream) -> tuple:
    exprs = [_parse_seq(stream)]
    while stream.eat("|"):
        exprs.append(_parse_seq(stream))
    return exprs[0] if len(exprs) == 1 else ("choice", exprs)


def _parse_seq(stream: _TokenStream) -> tuple:
    exprs = []
    while stream.next is not None and stream.next not in (")", "|"):
        exprs.append(_parse_subscript(stream))
    return exprs[0] if len(exprs) == 1 else ("seq", exprs)


def _parse_subscript(stream: _TokenStream) -> tuple:
    expr = _parse_atom(stream)
    while True:
        if stream.eat("+"):
            expr = ("plus", expr)
        elif stream.eat("*"):
            expr = ("star", expr)
        elif stream.eat("?"):
            expr = ("opt", expr)
        elif stream.eat("{"):
            expr = _parse_range(stream, expr)
        else:
            break
    return expr


def _parse_num(stream: _TokenStream) -> int:
    tok = stream.next
    if tok is None or not tok.isdigit():
        stream.err(f"Expected number, got '{tok}'")
    stream.pos += 1
    return int(tok)


def _parse_range(stream: _TokenStream, expr: tuple) -> tuple:
    low = _parse_num(stream)
    high = low
    if stream.eat(","):
        high = _parse_num(stream) if stream.next != "}" else -1
    if not stream.eat("}"):
        stream.err("Unclosed braced range")
    return ("range", low, high, expr)


def _resolve_name(stream: _TokenStream, name: str) -> list[NodeType]:
    types = stream.node_types
    if name in types:
        return [types[name]]
    result = [t for t in types.values() if name in t.groups]
    if not result:
        stream.err(f"No node type or group '{name}' found")
    return result


def _parse_atom(stream: _TokenStream) -> tuple:
    if stream.eat("("):
        expr = _parse_expr(stream)
        if not stream.eat(")"):
            stream.err("Missing closing paren")
        return expr
    tok = stream.next
    if tok is not None and re.fullmatch(r"\w+", tok) and not tok.isdigit():
        types = _resolve_name(stream, tok)
        stream.pos += 1
        if len(types) == 1:
            return ("name", types[0])
        return ("choice", [("name", t) for t in types])
    stream.err(f"Unexpected token '{tok}'")
    raise AssertionError("unreachable")


# ---------------------------------------------------------------------------
# Automaton construction
# ---------------------------------------------------------------------------


def _nfa(expr: tuple) -> list[list[list]]:
    """Build an NFA as a list of states, each a list of ``[term, to]`` edges.

    A ``None`` term is an epsilon edge.
    """
    nfa: list[list[list]] = [[]]

    def node() -> int:
        nfa.append([])
        return len(nfa) - 1

    def edge(frm: int, to: int | None = None, term: Any = None) -> list:
        e = [term, to]
        nfa[frm].append(e)
        return e

    def connect(edges: list[list], to: int) -> None:
        for e in edges:
            e[1] = to

    def compile_(expr: tuple, frm: int) -> list[list]:
        kind = expr[0]
        if kind == "choice":
            out: list[list] = []
            for sub in expr[1]:
                out.extend(compile_(sub, frm))
            return out
        if kind == "seq":
            subs = expr[1]
            for i, sub in enumerate(subs):
                nxt = compile_(sub, frm)
                if i == len(subs) - 1:
                    return nxt
                frm = node()
                connect(nxt, frm)
        if kind == "star":
            loop = node()
            edge(frm, loop)
            connect(compile_(expr[1], loop), loop)
            return [edge(loop)]
        if kind == "plus":
            loop = node()
            connect(compile_(expr[1], frm), loop)
            connect(compile_(expr[1], loop), loop)
            return [edge(loop)]
        if kind == "opt":
            return [edge(frm)] + compile_(expr[1], frm)
        if kind == "range":
            _, low, high, sub = expr
            cur = frm
            for _ in range(low):
                nxt_state = node()
                connect(compile_(sub, cur), nxt_state)
                cur = nxt_state
            if high == -1:
                connect(compile_(sub, cur), cur)
            else:
                for _ in range(low, high):
                    nxt_state = node()
                    edge(cur, nxt_state)
                    connect(compile_(sub, cur), nxt_state)
                    cur = nxt_state
            return [edge(cur)]
        if kind == "name":
            return [edge(frm, None, expr[1])]
        raise SchemaError(f"Unknown expression kind {kind}")

    edges = compile_(expr, 0)
    connect(edges, node())
    return nfa


def _null_from(nfa: list[list[list]], start: int) -> list[int]:
    result: list[int] = []

    def scan(n: int) -> None:
        edges = nfa[n]
        if len(edges) == 1 and edges[0][0] is None:
            scan(edges[0][1])
            return
        result.append(n)
        for term, to in edges:
            if term is None and to not in result:
                scan(to)

    scan(start)
    return sorted(result)


def _dfa(nfa: list[list[list]]) -> ContentMatch:
    labeled: dict[tuple[int, ...], ContentMatch] = {}
    final = len(nfa) - 1

    def explore(states: list[int]) -> ContentMatch:
        out: list[tuple[Any, list[int]]] = []
        for n in states:
            for term, to in nfa[n]:
                if term is None:
                    continue
                target = next((t for known, t in out if known is term), None)
                for m in _null_from(nfa, to):
                    if target is None:
                        target = []
                        out.append((term, target))
                    if m not in target:
                        target.append(m)
        state = ContentMatch(final in states)
        labeled[tuple(states)] = state
        for term, target in out:
            key = tuple(sorted(target))
            state.next.append((term, labeled.get(key) or explore(list(key))))
        return state

    return explore(_null_from(nfa, 0))
