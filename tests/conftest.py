"""Pytest configuration and fixtures."""

import asyncio
import re
from typing import Any, Callable, Optional

import pytest

from claimgraph.config.settings import Settings
from claimgraph.llm.chains import StageBackends
from claimgraph.processing.dedup import InMemoryTermStore

Responder = Callable[[dict[str, Any]], Any]


class FakeBackend:
    """Deterministic stage backend driven by a responder function.

    A responder may return a decoded JSON value or an exception instance,
    which is raised instead. ``delay_for`` gives per-payload latency in
    seconds, so tests can finish calls out of order or past a timeout.
    """

    def __init__(self, respond: Responder, delay_for: Optional[Callable[[dict[str, Any]], float]] = None):
        self.respond = respond
        self.delay_for = delay_for or (lambda payload: 0.0)
        self.payloads: list[dict[str, Any]] = []
        self.completed: list[dict[str, Any]] = []

    async def run(self, payload: dict[str, Any]) -> Any:
        self.payloads.append(payload)
        delay = self.delay_for(payload)
        if delay:
            await asyncio.sleep(delay)
        self.completed.append(payload)
        result = self.respond(payload)
        if isinstance(result, BaseException):
            raise result
        return result


# =============================================================================
# Default responders
# =============================================================================

FILLER = {"lol.", "wow.", "let's discuss."}


def keep_sentence(payload: dict[str, Any]) -> dict[str, Any]:
    sentence = payload["sentence"]
    if sentence.strip().lower() in FILLER:
        return {"keep": False, "reason": "filler"}
    return {"keep": True, "sentence": sentence, "kind": "factual", "needs_context": False, "missing": []}


def split_on_markers(payload: dict[str, Any]) -> dict[str, Any]:
    parts = re.split(r",?\s+(?:but|because|and)\s+", payload["sentence"].rstrip("."))
    claims = [part[0].upper() + part[1:] + "." for part in parts if part]
    return {"claims": claims}


def naive_graph(payload: dict[str, Any]) -> dict[str, Any]:
    """First word is the subject, second the predicate, the rest the object."""
    words = payload["claim"].rstrip(".").split()
    if len(words) < 3:
        words = [words[0], "is", " ".join(words[1:]) or "stated"]
    return {
        "core": {"subject": words[0], "predicate": words[1], "object": " ".join(words[2:])},
        "modifiers": [],
    }


def link_adjacent(payload: dict[str, Any]) -> dict[str, Any]:
    sentence = payload["sentence"].lower()
    indices = [claim["index"] for claim in payload["claims"]]
    for marker in ("because", "but", "and"):
        if re.search(rf"\b{marker}\b", sentence) and len(indices) >= 2:
            return {"relations": [{"from": indices[0], "to": indices[1], "predicate": marker}]}
    return {"relations": []}


def support_everything(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "verifications": [
            {"stableKey": claim["stableKey"], "alignsWithStance": True, "suggestedStance": "SUPPORTS"}
            for claim in payload["claims"]
        ]
    }


def make_backends(**overrides: Responder) -> StageBackends:
    """Fake backends with default responders, individually overridable."""
    responders: dict[str, Responder] = {
        "selection": keep_sentence,
        "decomposition": split_on_markers,
        "graph_extraction": naive_graph,
        "relation_linking": link_adjacent,
        "stance_verification": support_everything,
    }
    responders.update(overrides)
    return StageBackends(**{name: FakeBackend(respond) for name, respond in responders.items()})


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(_env_file=None, segmenter="regex", stage_timeout_seconds=5.0, max_concurrency=2)


@pytest.fixture
def backends() -> StageBackends:
    return make_backends()


@pytest.fixture
def backend_factory() -> Callable[..., StageBackends]:
    """Build fake backends with selected responders overridden."""
    return make_backends


@pytest.fixture
def term_store() -> InMemoryTermStore:
    return InMemoryTermStore()


@pytest.fixture
def sample_markdown() -> str:
    """Small debate post with headers, a bullet and a contrast."""
    return (
        "# Energy\n"
        "Nuclear is safe. Coal is cheap but pollutes heavily.\n"
        "## Costs\n"
        "- Solar panels cost less every year.\n"
        "lol.\n"
    )
