"""Unit tests for markdown sentence segmentation."""

import types

import pytest

from claimgraph.config.settings import Settings
from claimgraph.extraction import segmenter
from claimgraph.extraction.segmenter import (
    RegexSentenceSplitter,
    SpacySentenceSplitter,
    create_sentence_splitter,
    split_markdown_into_sentences,
)


class TestSplitMarkdown:
    """Tests for split_markdown_into_sentences."""

    def test_header_paths(self):
        text = "# Topic\nNuclear is safe. It is clean.\n## Sub\nCoal is dirty."
        segments = [
            (seg.header_path, seg.sentence) for seg in split_markdown_into_sentences(text)
        ]
        assert segments == [
            (["Topic"], "Nuclear is safe."),
            (["Topic"], "It is clean."),
            (["Topic", "Sub"], "Coal is dirty."),
        ]

    def test_returns_generator(self):
        result = split_markdown_into_sentences("Nuclear is safe.")
        assert isinstance(result, types.GeneratorType)
        assert [seg.sentence for seg in result] == ["Nuclear is safe."]
        assert list(result) == []

    def test_heading_truncates_deeper_levels(self):
        text = "# A\n## B\n### C\nDeep text.\n## D\nShallow text."
        segments = list(split_markdown_into_sentences(text))
        assert segments[0].header_path == ["A", "B", "C"]
        assert segments[1].header_path == ["A", "D"]

    def test_skipped_levels_are_not_in_path(self):
        segments = list(split_markdown_into_sentences("### Deep only\nSome text here."))
        assert segments[0].header_path == ["Deep only"]

    def test_list_markers_stripped(self):
        text = "- First item.\n* Second item.\n• Third item.\n12. Numbered item."
        sentences = [seg.sentence for seg in split_markdown_into_sentences(text)]
        assert sentences == ["First item.", "Second item.", "Third item.", "Numbered item."]

    def test_blank_lines_and_headers_only(self):
        assert list(split_markdown_into_sentences("\n\n# Only a header\n\n")) == []

    def test_no_split_on_lowercase_continuation(self):
        sentences = [seg.sentence for seg in split_markdown_into_sentences("Prices rose ca. ten percent.")]
        assert sentences == ["Prices rose ca. ten percent."]

    def test_split_before_digit_and_quote(self):
        splitter = RegexSentenceSplitter()
        assert splitter.split('It happened. 2024 was hot. "Really" he asked.') == [
            "It happened.",
            "2024 was hot.",
            '"Really" he asked.',
        ]


class TestSplitterSelection:
    """Tests for choosing a splitter from settings."""

    def test_auto_is_the_default(self):
        assert Settings(_env_file=None).segmenter == "auto"

    def test_auto_without_spacy_uses_regex(self, monkeypatch):
        monkeypatch.setattr(segmenter, "spacy_available", lambda: False)
        splitter = create_sentence_splitter(Settings(_env_file=None))
        assert isinstance(splitter, RegexSentenceSplitter)

    def test_auto_with_spacy(self):
        pytest.importorskip("spacy")
        splitter = create_sentence_splitter(Settings(_env_file=None))
        assert isinstance(splitter, SpacySentenceSplitter)
        assert splitter.split("Nuclear is safe. It is clean.") == ["Nuclear is safe.", "It is clean."]

    def test_regex_when_configured(self, monkeypatch):
        monkeypatch.setattr(segmenter, "spacy_available", lambda: True)
        splitter = create_sentence_splitter(Settings(_env_file=None, segmenter="regex"))
        assert isinstance(splitter, RegexSentenceSplitter)

    def test_spacy_splitter(self):
        pytest.importorskip("spacy")
        splitter = create_sentence_splitter(Settings(_env_file=None, segmenter="spacy"))
        assert splitter.split("Nuclear is safe. It is clean.") == ["Nuclear is safe.", "It is clean."]
