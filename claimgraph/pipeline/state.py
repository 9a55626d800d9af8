"""Pipeline state definition for LangGraph."""

import operator
from dataclasses import dataclass, field
from typing import Annotated, Optional, TypedDict

from claimgraph.errors import ClaimGraphError, ExternalCallError, InvariantViolation, StageError
from claimgraph.models import (
    DedupReport,
    ExtractionOptions,
    NestedEdge,
    ProcessingWarning,
    Segment,
    SentenceResult,
    StageName,
    Triple,
    WarningType,
)
from claimgraph.models.contracts import Relation

from .stages import CallLedger


def warning_for(error: ClaimGraphError, stage: StageName, sentence_index: Optional[int] = None) -> ProcessingWarning:
    """Build the warning recorded for a recoverable error."""
    match error:
        case ExternalCallError():
            warning_type = WarningType.EXTERNAL_CALL
        case InvariantViolation():
            warning_type = WarningType.INVARIANT_VIOLATION
        case _:
            warning_type = WarningType.SCHEMA_VALIDATION
    message = error.message if isinstance(error, StageError) else str(error)
    return ProcessingWarning(
        sentence_index=sentence_index,
        stage=stage,
        warning_type=warning_type,
        message=message,
    )


@dataclass
class SentenceWork:
    """Mutable per-sentence working set, re-joined by index after fan-out."""

    segment: Segment
    header_context: str
    previous_sentence: str
    result: SentenceResult
    sentence_context: str = ""

    # claim index -> canonical triple
    claim_triples: dict[int, Triple] = field(default_factory=dict)
    # meta, conditional and modifier edges, in claim order
    edges: list[NestedEdge] = field(default_factory=list)
    # sub-triples reached only through modifier edges
    sub_triples: list[Triple] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    warnings: list[ProcessingWarning] = field(default_factory=list)
    ledger: CallLedger = field(default_factory=CallLedger)

    @property
    def index(self) -> int:
        return self.result.index

    def warn(self, error: ClaimGraphError, stage: StageName) -> None:
        self.warnings.append(warning_for(error, stage, self.index))


class ExtractionState(TypedDict, total=False):
    """State that flows through the LangGraph extraction pipeline.

    Uses Annotated types with operators for list accumulation.
    """

    # Input
    text: str
    options: ExtractionOptions

    # Segmentation
    segments: list[Segment]

    # Per-sentence selection, decomposition, graph extraction, relation linking
    works: list[SentenceWork]

    # Edge building
    edges: list[NestedEdge]

    # Dedup reconciliation
    dedup: Optional[DedupReport]

    # Warnings raised outside any single sentence
    warnings: Annotated[list[ProcessingWarning], operator.add]


def create_initial_state(text: str, options: ExtractionOptions) -> ExtractionState:
    """Create initial pipeline state."""
    return ExtractionState(
        text=text,
        options=options,
        segments=[],
        works=[],
        edges=[],
        dedup=None,
        warnings=[],
    )
