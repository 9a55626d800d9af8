"""Models for markdown sentence segmentation."""

from pydantic import BaseModel, ConfigDict, Field


class Segment(BaseModel):
    """One sentence of the submission with its markdown header ancestry."""

    model_config = ConfigDict(frozen=True)

    header_path: list[str] = Field(default_factory=list, description="Non-empty ancestor headings, outermost first")
    sentence: str = Field(..., min_length=1, description="Sentence text")
