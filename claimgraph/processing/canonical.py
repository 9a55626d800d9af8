"""Canonicalizer: builds keyed atoms, triples and nested edges.

Pure functions, no I/O. Everything produced here is immutable and keyed by
content, so re-running the pipeline over identical text yields identical keys.
"""

from claimgraph.errors import InvariantViolation
from claimgraph.hashing import atom_key, normalize_atom_label, normalize_key_part
from claimgraph.models.enums import EdgeKind, EdgeOrigin, TripleOrigin
from claimgraph.models.terms import (
    AtomRef,
    NestedEdge,
    TermRef,
    Triple,
    TripleRef,
    edge_key,
    term_ref_id,
    triple_key,
)

DEFAULT_MAX_NESTING_DEPTH = 2


def atom(label: str) -> AtomRef:
    """Atom reference for a label; the display label keeps its case."""
    display = normalize_atom_label(label)
    if not display:
        raise InvariantViolation("Atom label must not be empty")
    return AtomRef(atom_key=atom_key(display), label=display)


def _as_term(value: TermRef | str) -> TermRef:
    return atom(value) if isinstance(value, str) else value


def make_triple(
    subject: TermRef | str,
    predicate: TermRef | str,
    object_: TermRef | str,
    *,
    origin: TripleOrigin | None = TripleOrigin.AGENT,
    max_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> Triple:
    """Build a keyed triple. Plain strings are wrapped as atoms.

    Raises:
        InvariantViolation: If the predicate is a triple reference or the
            triple would nest deeper than ``max_depth``.
    """
    if isinstance(predicate, TripleRef):
        raise InvariantViolation("Triple predicate must be an atom, got a nested triple reference")

    triple = Triple(
        subject=_as_term(subject),
        predicate=_as_term(predicate),
        object=_as_term(object_),
        origin=origin,
    )
    if triple.depth > max_depth:
        raise InvariantViolation(
            f"Triple nesting depth {triple.depth} exceeds bound {max_depth}: {triple.label}"
        )
    return triple


def triple_ref(triple: Triple) -> TripleRef:
    """Reference to ``triple`` usable as the subject or object of another statement."""
    return TripleRef(triple_key=triple.stable_key, label=triple.label, depth=triple.depth)


def make_edge(
    kind: EdgeKind,
    predicate: str,
    subject: TermRef,
    object_: TermRef,
    *,
    origin: EdgeOrigin = EdgeOrigin.AGENT,
    max_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> NestedEdge:
    """Build a keyed nested edge.

    Raises:
        InvariantViolation: If the predicate is empty or the edge would nest
            deeper than ``max_depth``.
    """
    text = normalize_atom_label(predicate)
    if not text:
        raise InvariantViolation(f"Nested {kind.value} edge is missing a predicate")

    edge = NestedEdge(kind=kind, origin=origin, predicate=text, subject=subject, object=object_)
    if edge.depth > max_depth:
        raise InvariantViolation(f"Edge nesting depth {edge.depth} exceeds bound {max_depth}")
    return edge


__all__ = [
    "DEFAULT_MAX_NESTING_DEPTH",
    "atom",
    "atom_key",
    "edge_key",
    "make_edge",
    "make_triple",
    "normalize_atom_label",
    "normalize_key_part",
    "term_ref_id",
    "triple_key",
    "triple_ref",
]
