"""Pydantic data models for the pipeline."""

from .enums import (
    EdgeKind,
    EdgeOrigin,
    SentenceKind,
    StageName,
    Stance,
    TripleOrigin,
    WarningType,
)
from .terms import (
    AtomRef,
    NestedEdge,
    TermRef,
    Triple,
    TripleRef,
    edge_key,
    term_label,
    term_ref_id,
    triple_key,
)
from .segmentation import Segment
from .results import (
    ClaimResult,
    DedupReport,
    ExtractionOptions,
    ExtractionResult,
    ProcessingWarning,
    SentenceResult,
)
from .editorial import Post, Topic, draft_post

__all__ = [
    # Enums
    "EdgeKind",
    "EdgeOrigin",
    "SentenceKind",
    "StageName",
    "Stance",
    "TripleOrigin",
    "WarningType",
    # Terms
    "AtomRef",
    "TripleRef",
    "TermRef",
    "Triple",
    "NestedEdge",
    "term_ref_id",
    "term_label",
    "triple_key",
    "edge_key",
    # Segmentation
    "Segment",
    # Results
    "ExtractionOptions",
    "ProcessingWarning",
    "ClaimResult",
    "SentenceResult",
    "DedupReport",
    "ExtractionResult",
    # Editorial
    "Post",
    "Topic",
    "draft_post",
]
