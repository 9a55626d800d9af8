"""Markdown-aware sentence segmentation with header-path tracking."""

import re
from importlib.util import find_spec
from typing import Iterator, Protocol

import structlog

from claimgraph.config.settings import Settings, get_settings
from claimgraph.models import Segment

logger = structlog.get_logger(__name__)

HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(.*)$")
BULLET_MARKER = re.compile(r"^[-*•]\s+")
NUMBERED_MARKER = re.compile(r"^\d+\.\s+")

# Break after .!? when followed by whitespace and a likely sentence start.
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9#\"'“‘(\[])")


class SentenceSplitter(Protocol):
    """Splits one line of prose into sentences."""

    def split(self, text: str) -> list[str]: ...


class RegexSentenceSplitter:
    """Conservative, deterministic splitter. Keeps delimiters in the sentence."""

    def split(self, text: str) -> list[str]:
        text = text.strip()
        if not text:
            return []
        return [part.strip() for part in SENTENCE_BOUNDARY.split(text) if part.strip()]


class SpacySentenceSplitter:
    """Locale-aware rule-based splitter backed by spaCy's sentencizer.

    Uses a blank pipeline, so no trained model download is required.
    """

    def __init__(self, language: str = "en"):
        import spacy

        self.language = language
        self._nlp = spacy.blank(language)
        self._nlp.add_pipe("sentencizer")
        logger.info("spacy_sentencizer_loaded", language=language)

    def split(self, text: str) -> list[str]:
        text = text.strip()
        if not text:
            return []
        sentences = [span.text.strip() for span in self._nlp(text).sents if span.text.strip()]
        return sentences or [text]


def spacy_available() -> bool:
    return find_spec("spacy") is not None


def create_sentence_splitter(settings: Settings | None = None) -> SentenceSplitter:
    """Create the splitter selected in settings.

    ``auto`` uses spaCy when the ``nlp`` extra is installed and the regex
    splitter otherwise.
    """
    settings = settings or get_settings()
    use_spacy = settings.segmenter == "spacy" or (settings.segmenter == "auto" and spacy_available())
    if use_spacy:
        return SpacySentenceSplitter(settings.spacy_language)
    logger.debug("regex_splitter_selected", segmenter=settings.segmenter)
    return RegexSentenceSplitter()


def split_markdown_into_sentences(
    text: str,
    splitter: SentenceSplitter | None = None,
) -> Iterator[Segment]:
    """Yield sentence segments of a markdown document in reading order.

    Headings (``#`` to ``######``) update a header stack indexed by level; a
    heading truncates every deeper level. Leading list markers are stripped
    without discarding the item text.

    Args:
        text: Markdown source.
        splitter: Sentence splitter for prose lines (regex by default).

    Yields:
        Segment with the non-empty header ancestry and the sentence.
    """
    splitter = splitter or RegexSentenceSplitter()
    headers: list[str] = []

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        match = HEADER_PATTERN.match(line)
        if match:
            level = len(match.group(1))
            del headers[level - 1:]
            headers.extend([""] * (level - 1 - len(headers)))
            headers.append(match.group(2).strip())
            continue

        line = BULLET_MARKER.sub("", line)
        line = NUMBERED_MARKER.sub("", line)

        for sentence in splitter.split(line):
            yield Segment(header_path=[h for h in headers if h], sentence=sentence)
