"""Canonicalization, claim-shape helpers and dedup reconciliation."""

from .canonical import atom, make_edge, make_triple, triple_ref
from .claims import (
    dedupe_strings,
    edge_kind_for_predicate,
    ensure_period,
    parse_conditional,
    parse_meta_claim,
)
from .dedup import (
    DedupReconciler,
    DedupResolver,
    HttpDedupResolver,
    InMemoryTermStore,
    ResolvedAtom,
    group_atom_labels,
)

__all__ = [
    "atom",
    "make_triple",
    "make_edge",
    "triple_ref",
    "dedupe_strings",
    "ensure_period",
    "parse_meta_claim",
    "parse_conditional",
    "edge_kind_for_predicate",
    "DedupReconciler",
    "DedupResolver",
    "HttpDedupResolver",
    "InMemoryTermStore",
    "ResolvedAtom",
    "group_atom_labels",
]
