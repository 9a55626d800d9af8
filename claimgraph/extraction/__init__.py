"""Text segmentation."""

from .segmenter import (
    RegexSentenceSplitter,
    SentenceSplitter,
    SpacySentenceSplitter,
    create_sentence_splitter,
    split_markdown_into_sentences,
)

__all__ = [
    "RegexSentenceSplitter",
    "SentenceSplitter",
    "SpacySentenceSplitter",
    "create_sentence_splitter",
    "split_markdown_into_sentences",
]
