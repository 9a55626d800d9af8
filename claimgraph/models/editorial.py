"""Editorial containers. They reference triples by key and never define graph structure."""

import time
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from .results import ExtractionResult


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex


class Post(BaseModel):
    """A debate post and the keys of the triples proposed for it."""

    id: str = Field(default_factory=_new_id)
    text: str
    main_triple_key: Optional[str] = None
    proposed_triple_keys: list[str] = Field(default_factory=list)
    validated_triple_keys: list[str] = Field(
        default_factory=list, description="Reviewer-approved subset, written by the editorial layer"
    )
    is_validated: bool = False
    created_at: int = Field(default_factory=_now_ms, description="Unix epoch milliseconds")


class Topic(BaseModel):
    """Optional grouping (theme) of root posts."""

    id: str = Field(default_factory=_new_id)
    title: Optional[str] = None
    created_at: int = Field(default_factory=_now_ms)


def draft_post(text: str, result: ExtractionResult, post_id: Optional[str] = None) -> Post:
    """Build an unvalidated post from one pipeline run."""
    return Post(
        id=post_id or _new_id(),
        text=text,
        main_triple_key=result.main_triple_key,
        proposed_triple_keys=[triple.stable_key for triple in result.triples],
    )
