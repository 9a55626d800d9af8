"""Models for extraction options, per-sentence results and dedup reports."""

from typing import Optional

from pydantic import BaseModel, Field

from .enums import SentenceKind, StageName, Stance, WarningType
from .terms import NestedEdge, Triple


class ExtractionOptions(BaseModel):
    """Caller-supplied context for one submission."""

    theme_title: Optional[str] = Field(None, description="Theme the post belongs to")
    parent_claim_text: Optional[str] = Field(None, description="Body of the parent post when replying")
    user_stance: Optional[Stance] = Field(None, description="Declared stance toward the parent")

    @property
    def wants_stance_check(self) -> bool:
        return bool((self.parent_claim_text or "").strip()) and self.user_stance is not None


class ProcessingWarning(BaseModel):
    """A recoverable failure recorded while processing a submission."""

    sentence_index: Optional[int] = Field(None, ge=0, description="Affected sentence, if any")
    stage: StageName
    warning_type: WarningType
    message: str


class ClaimResult(BaseModel):
    """One atomic claim and its canonical triple, if one could be built."""

    index: int = Field(..., ge=0, description="Position within the sentence")
    claim: str
    triple: Optional[Triple] = None

    # Stance verification annotations
    suggested_stance: Optional[Stance] = None
    stance_aligned: Optional[bool] = None
    stance_reason: Optional[str] = None


class SentenceResult(BaseModel):
    """Everything the pipeline derived from one segmented sentence."""

    index: int = Field(..., ge=0)
    header_path: list[str] = Field(default_factory=list)
    sentence: str
    selected_sentence: Optional[str] = None
    kind: Optional[SentenceKind] = None
    needs_context: bool = False
    missing: list[str] = Field(default_factory=list)
    dropped_reason: Optional[str] = None
    claims: list[ClaimResult] = Field(default_factory=list)

    @property
    def keyed_claims(self) -> list[ClaimResult]:
        return [c for c in self.claims if c.triple is not None]


class DedupReport(BaseModel):
    """Outcome of reconciling a batch against the store of record."""

    atom_ids: dict[str, str] = Field(default_factory=dict, description="atom_key -> canonical id")
    new_atom_keys: list[str] = Field(default_factory=list)
    statement_ids: dict[str, str] = Field(
        default_factory=dict, description="triple/edge stable_key -> canonical id"
    )
    new_statement_keys: list[str] = Field(default_factory=list)

    @property
    def is_fully_known(self) -> bool:
        return not self.new_atom_keys and not self.new_statement_keys


class ExtractionResult(BaseModel):
    """Output of one pipeline run."""

    sentences: list[SentenceResult] = Field(default_factory=list)
    edges: list[NestedEdge] = Field(default_factory=list)
    nested_triples: list[Triple] = Field(
        default_factory=list, description="Sub-triples referenced only by modifier edges"
    )
    warnings: list[ProcessingWarning] = Field(default_factory=list)
    dedup: Optional[DedupReport] = None

    @property
    def triples(self) -> list[Triple]:
        """Unique claim triples in sentence and claim order."""
        seen: set[str] = set()
        out: list[Triple] = []
        for sentence in self.sentences:
            for claim in sentence.keyed_claims:
                if claim.triple.stable_key in seen:
                    continue
                seen.add(claim.triple.stable_key)
                out.append(claim.triple)
        return out

    @property
    def main_triple_key(self) -> Optional[str]:
        """Key of the first keyed claim; decomposition puts propositions first."""
        triples = self.triples
        return triples[0].stable_key if triples else None
