"""JSON contracts between the pipeline and its model-backed stages.

Each stage sends an ``*Input`` payload to its backend and validates the
decoded response against the matching ``*Output`` model. Output models
forbid unknown keys: a response that does not conform is a stage failure,
never a partial acceptance.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

from .enums import SentenceKind, Stance

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

RELATION_PREDICATES: tuple[str, ...] = (
    "but",
    "however",
    "although",
    "because",
    "therefore",
    "so",
    "if",
    "unless",
    "when",
    "and",
    "or",
    "could lead to",
    "may lead to",
    "might lead to",
    "will lead to",
)

RelationPredicate = Literal[
    "but",
    "however",
    "although",
    "because",
    "therefore",
    "so",
    "if",
    "unless",
    "when",
    "and",
    "or",
    "could lead to",
    "may lead to",
    "might lead to",
    "will lead to",
]

MAX_RELATIONS_PER_SENTENCE = 6
MAX_CLAIMS_PER_SENTENCE = 5

# Bare prepositions are never acceptable as a core predicate.
BARE_PREPOSITIONS = frozenset({"for", "in", "of", "to", "by", "with"})


class StageContract(BaseModel):
    """Base for stage payloads: unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# =============================================================================
# Selection
# =============================================================================

class SelectionInput(StageContract):
    header_context: str = ""
    previous_sentence: str = ""
    sentence: str


class SelectionKept(StageContract):
    """Sentence kept, possibly lightly normalized."""

    keep: Literal[True]
    sentence: NonEmptyStr
    kind: SentenceKind
    needs_context: bool = False
    missing: list[NonEmptyStr] = Field(default_factory=list)


class SelectionDropped(StageContract):
    """Sentence dropped (rhetoric, filler, procedural)."""

    keep: Literal[False]
    reason: NonEmptyStr


SelectionOutput = Union[SelectionKept, SelectionDropped]


# =============================================================================
# Decomposition
# =============================================================================

class DecompositionInput(StageContract):
    header_context: str = ""
    sentence: str


class DecompositionOutput(StageContract):
    """Atomic claims in semantic order: propositions, full conditional,
    condition-only, which-clause, meta attribution."""

    claims: list[NonEmptyStr] = Field(..., min_length=1, max_length=MAX_CLAIMS_PER_SENTENCE)


# =============================================================================
# Graph extraction
# =============================================================================

class GraphInput(StageContract):
    claim: str
    sentence_context: str = ""


class CoreTriple(StageContract):
    subject: NonEmptyStr
    predicate: NonEmptyStr
    object: NonEmptyStr

    @field_validator("predicate")
    @classmethod
    def _not_bare_preposition(cls, value: str) -> str:
        if value.lower() in BARE_PREPOSITIONS:
            raise ValueError(f"bare preposition {value!r} is not a predicate")
        return value


class Modifier(StageContract):
    prep: NonEmptyStr
    value: NonEmptyStr


class GraphOutput(StageContract):
    core: CoreTriple
    modifiers: list[Modifier] = Field(default_factory=list)


# =============================================================================
# Relation linking
# =============================================================================

class RelationClaim(StageContract):
    index: int = Field(..., ge=0)
    text: str
    core_triple: str = Field(..., description="Rendered as '(S | P | O)'")


class RelationInput(StageContract):
    sentence: str
    claims: list[RelationClaim]


class Relation(StageContract):
    from_: int = Field(..., ge=0, alias="from")
    to: int = Field(..., ge=0)
    predicate: RelationPredicate

    @field_validator("predicate", mode="before")
    @classmethod
    def _normalize_predicate(cls, value: object) -> object:
        if isinstance(value, str):
            return " ".join(value.split()).lower()
        return value

    @model_validator(mode="after")
    def _no_self_link(self) -> "Relation":
        if self.from_ == self.to:
            raise ValueError(f"self-link on claim {self.to}")
        return self


class RelationOutput(StageContract):
    relations: list[Relation] = Field(default_factory=list, max_length=MAX_RELATIONS_PER_SENTENCE)


# =============================================================================
# Stance verification
# =============================================================================

class StanceClaim(StageContract):
    stable_key: str = Field(..., alias="stableKey")
    text: str
    triple: str = Field(..., description="Rendered as 'S | P | O'")


class StanceInput(StageContract):
    parent_claim: str = Field(..., alias="parentClaim")
    user_stance: Stance = Field(..., alias="userStance")
    claims: list[StanceClaim]


class StanceVerification(StageContract):
    stable_key: str = Field(..., alias="stableKey")
    aligns_with_stance: bool = Field(..., alias="alignsWithStance")
    suggested_stance: Stance = Field(..., alias="suggestedStance")
    reason: Optional[str] = None


class StanceOutput(StageContract):
    verifications: list[StanceVerification]
