"""Claim-shape helpers: discourse markers, meta and conditional claims.

These recognize the fixed surface forms the decomposition contract requires
("<source> <verb> that <P>.", "If C, M" / "M if C"). They do not parse claims
into subject/predicate/object; that comes from the graph extraction stage.
Only the noun phrases that stage returns are split further, at a preposition.
"""

import re
from dataclasses import dataclass
from typing import Literal, Optional

from claimgraph.models.enums import EdgeKind

DECOMPOSE_MARKERS = re.compile(
    r"\b(but|however|although|though|yet|because|therefore|so|if|unless|when|whenever|and)\b|,\s*which\b",
    re.IGNORECASE,
)
RELATION_MARKERS = re.compile(
    r"\b(but|however|although|because|therefore|so|if|unless|when|and|or)\b"
    r"|\b(could|may|might|will)\s+lead\s+to\b",
    re.IGNORECASE,
)

REPORTING_VERBS = frozenset({
    "said", "says",
    "suggest", "suggests", "suggested",
    "find", "finds", "found",
    "report", "reports", "reported",
    "estimate", "estimates", "estimated",
    "predict", "predicts", "predicted",
    "argue", "argues", "argued",
    "promise", "promises", "promised",
})

CONDITIONAL_MARKERS = frozenset({"if", "unless", "when"})

_META_PATTERN = re.compile(r"^(.+?)\s+([a-z]+)\s+that\s+(.+)$", re.IGNORECASE)
_LEADING_CONDITIONAL = re.compile(r"^(If|Unless|When)\s+(.+?),\s+(.+)$", re.IGNORECASE)
_TRAILING_CONDITIONAL = re.compile(r"^(.+?)\s+(if|unless|when)\s+(.+)$", re.IGNORECASE)
_OUTER_QUOTES_START = re.compile(r"^[\s\"'“”‘’]+")
_OUTER_QUOTES_END = re.compile(r"[\s\"'“”‘’]+$")
_PREPOSITIONAL_PHRASE = re.compile(
    r"^(.+?)\s+(under|over|above|below|before|after|between|within|of|for|on|in|at|from|to|with|without|against)\s+(.+)$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class MetaClaim:
    """Attribution frame: ``source`` ``verb`` that ``proposition``."""

    source: str
    verb: str
    proposition: str


@dataclass(frozen=True)
class Conditional:
    """Conditional claim split into its marker, condition and main clause."""

    keyword: Literal["if", "unless", "when"]
    condition: str
    main: str


@dataclass(frozen=True)
class PrepositionalPhrase:
    """Noun phrase split at its first preposition: "children under 16"."""

    head: str
    preposition: str
    complement: str


def strip_outer_quotes(text: str) -> str:
    text = _OUTER_QUOTES_START.sub("", (text or "").strip())
    return _OUTER_QUOTES_END.sub("", text).strip()


def ensure_period(text: str) -> str:
    text = text.strip()
    if not text or text[-1] in ".!?":
        return text
    return text + "."


def dedupe_strings(items: list[str]) -> list[str]:
    """Trim, drop empties and case-insensitive duplicates, keep first occurrence order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        key = item.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(item.strip())
    return out


def needs_decomposition(sentence: str) -> bool:
    return bool(DECOMPOSE_MARKERS.search(sentence))


def has_relation_marker(sentence: str) -> bool:
    return bool(RELATION_MARKERS.search(sentence))


def parse_meta_claim(claim: str) -> Optional[MetaClaim]:
    """Recognize "<source> <reporting verb> that <proposition>"."""
    text = claim.strip()
    if text.endswith("."):
        text = text[:-1]
    match = _META_PATTERN.match(text)
    if not match:
        return None
    source, verb, proposition = (part.strip() for part in match.groups())
    if verb.lower() not in REPORTING_VERBS or not proposition:
        return None
    return MetaClaim(source=source, verb=verb, proposition=proposition)


def parse_conditional(claim: str) -> Optional[Conditional]:
    """Recognize "If C, M" and "M if|unless|when C"."""
    text = claim.strip()
    if text.endswith("."):
        text = text[:-1]

    match = _LEADING_CONDITIONAL.match(text)
    if match:
        keyword, condition, main = match.groups()
    else:
        match = _TRAILING_CONDITIONAL.match(text)
        if not match:
            return None
        main, keyword, condition = match.groups()

    return Conditional(
        keyword=keyword.lower(),  # type: ignore[arg-type]
        condition=condition.strip(),
        main=main.strip(),
    )


def split_prepositional_phrase(text: str) -> Optional[PrepositionalPhrase]:
    """Split a phrase of three or more words at its first preposition.

    Used on modifier values and core subjects so that "children under 16"
    becomes the sub-triple (children, under, 16) instead of an opaque atom.
    """
    text = text.strip()
    if len(text.split()) < 3:
        return None
    match = _PREPOSITIONAL_PHRASE.match(text)
    if not match:
        return None
    head, preposition, complement = (part.strip() for part in match.groups())
    if not (head and preposition and complement):
        return None
    return PrepositionalPhrase(head=head, preposition=preposition.lower(), complement=complement)


def edge_kind_for_predicate(predicate: str) -> EdgeKind:
    """Edge class of a relation predicate: conditional, meta or relation."""
    normalized = " ".join(predicate.split()).lower()
    if normalized in CONDITIONAL_MARKERS:
        return EdgeKind.CONDITIONAL
    if normalized in REPORTING_VERBS:
        return EdgeKind.META
    return EdgeKind.RELATION
