"""Recursive term model: atoms, triples and nested edges.

A ``TermRef`` is a closed union of ``AtomRef`` and ``TripleRef``. Composite
hashes serialize their parts through ``term_ref_id``, so the identity of a
triple depends only on the normalized labels of the atoms it is built from.

Key layout (SHA-256 hex digests):
    atom    sha256("atom:" + normalize_key_part(label))
    triple  sha256("triple:" + id(s) + "|" + id(p) + "|" + id(o))
    edge    sha256("edge:" + id(from) + "|" + id(atom(predicate)) + "|" + id(to))
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from claimgraph import hashing
from claimgraph.errors import InvariantViolation

from .enums import EdgeKind, EdgeOrigin, TripleOrigin


class AtomRef(BaseModel):
    """Reference to a single labeled concept."""

    model_config = ConfigDict(frozen=True)

    type: Literal["atom"] = "atom"
    atom_key: str = Field(..., description="Content hash of the normalized label")
    label: str = Field(..., description="Display label (whitespace-collapsed)")

    @property
    def depth(self) -> int:
        return 0


class TripleRef(BaseModel):
    """Reference to another triple, used for statements about statements.

    ``depth`` is declared by whoever builds the reference; there is no triple
    here to recompute it from. Build references with
    ``claimgraph.processing.canonical.triple_ref``, which copies the depth of
    the referenced triple. The nesting bound itself is checked by
    ``make_triple`` and ``make_edge``, not by model construction.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["triple"] = "triple"
    triple_key: str = Field(..., description="Stable key of the referenced triple")
    label: str | None = Field(None, description="Human-readable 'S · P · O'")
    depth: int = Field(default=1, ge=1, description="Nesting depth of the referenced triple")


TermRef = Annotated[Union[AtomRef, TripleRef], Field(discriminator="type")]


def term_ref_id(ref: TermRef) -> str:
    """Canonical textual identity of a term reference inside composite hashes."""
    match ref:
        case AtomRef(atom_key=key):
            return f"atom:{key}"
        case TripleRef(triple_key=key):
            return f"triple:{key}"
    raise InvariantViolation(f"Unsupported term reference: {ref!r}")


def term_label(ref: TermRef) -> str:
    match ref:
        case AtomRef(label=label):
            return label
        case TripleRef(label=label, triple_key=key):
            return label or key[:12]
    raise InvariantViolation(f"Unsupported term reference: {ref!r}")


def triple_key(subject: TermRef, predicate: TermRef, object_: TermRef) -> str:
    parts = "|".join(term_ref_id(ref) for ref in (subject, predicate, object_))
    return hashing.sha256_text(f"triple:{parts}")


def edge_key(from_: TermRef, predicate: str, to: TermRef) -> str:
    predicate_id = f"atom:{hashing.atom_key(predicate)}"
    return hashing.sha256_text(f"edge:{term_ref_id(from_)}|{predicate_id}|{term_ref_id(to)}")


def _reject_nested_predicate(data: Any) -> None:
    if not isinstance(data, dict):
        return
    predicate = data.get("predicate")
    kind = predicate.get("type") if isinstance(predicate, dict) else getattr(predicate, "type", None)
    if kind == "triple":
        raise InvariantViolation("Triple predicate must be an atom, got a nested triple reference")


class Triple(BaseModel):
    """Subject-predicate-object statement; the only semantic primitive.

    The predicate is always an atom. ``stable_key`` is derived from the three
    terms and cannot be supplied by callers.
    """

    model_config = ConfigDict(frozen=True)

    subject: TermRef
    predicate: AtomRef
    object: TermRef
    origin: TripleOrigin | None = None
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _predicate_is_atom(cls, data: Any) -> Any:
        _reject_nested_predicate(data)
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stable_key(self) -> str:
        return triple_key(self.subject, self.predicate, self.object)

    @property
    def depth(self) -> int:
        return 1 + max(self.subject.depth, self.object.depth)

    @property
    def label(self) -> str:
        return f"{term_label(self.subject)} · {self.predicate.label} · {term_label(self.object)}"


class NestedEdge(BaseModel):
    """Discourse relation between two term references (extraction-time)."""

    model_config = ConfigDict(frozen=True)

    kind: EdgeKind
    origin: EdgeOrigin = EdgeOrigin.AGENT
    predicate: str = Field(..., min_length=1, description="Hashed as an atom when keyed")
    subject: TermRef
    object: TermRef

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stable_key(self) -> str:
        return edge_key(self.subject, self.predicate, self.object)

    @property
    def depth(self) -> int:
        return 1 + max(self.subject.depth, self.object.depth)
