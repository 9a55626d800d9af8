"""Unit tests for the model-backed pipeline stages."""

import asyncio

import pytest

from claimgraph.errors import ExternalCallError, SchemaValidationError
from claimgraph.models import Stance
from claimgraph.models.contracts import RelationClaim, SelectionDropped, SelectionKept, StanceClaim
from claimgraph.pipeline.stages import (
    CallLedger,
    DecompositionStage,
    GraphExtractionStage,
    RelationLinkingStage,
    SelectionStage,
    StanceVerificationStage,
)


class StaticBackend:
    """Returns the same response for every payload."""

    def __init__(self, response=None, delay: float = 0.0):
        self.response = response
        self.delay = delay
        self.payloads = []

    async def run(self, payload):
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response


class TestContractStage:
    """Tests for timeout, transport and schema handling."""

    @pytest.mark.asyncio
    async def test_timeout_is_external_call_error(self):
        ledger = CallLedger()
        stage = SelectionStage(StaticBackend({"keep": False, "reason": "x"}, delay=0.5), timeout_seconds=0.01)
        with pytest.raises(ExternalCallError):
            await stage.select("", "", "Coal is cheap.", ledger)
        assert (ledger.attempted, ledger.failed) == (1, 1)

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self):
        stage = SelectionStage(StaticBackend(ExternalCallError("selection", "connection refused")))
        with pytest.raises(ExternalCallError):
            await stage.select("", "", "Coal is cheap.")

    @pytest.mark.asyncio
    async def test_transport_error_is_external_call_error(self):
        ledger = CallLedger()
        stage = SelectionStage(StaticBackend(ConnectionError("connection reset")))
        with pytest.raises(ExternalCallError) as exc_info:
            await stage.select("", "", "Coal is cheap.", ledger)
        assert exc_info.value.stage == "selection"
        assert "ConnectionError: connection reset" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert (ledger.attempted, ledger.failed) == (1, 1)

    @pytest.mark.asyncio
    async def test_schema_violation(self):
        ledger = CallLedger()
        stage = SelectionStage(StaticBackend({"keep": "maybe"}))
        with pytest.raises(SchemaValidationError) as exc_info:
            await stage.select("", "", "Coal is cheap.", ledger)
        assert exc_info.value.stage == "selection"
        assert ledger.total_outage

    @pytest.mark.asyncio
    async def test_payload_shape(self):
        backend = StaticBackend({"keep": True, "sentence": "Coal is cheap.", "kind": "factual"})
        result = await SelectionStage(backend).select("Energy", "Nuclear is safe.", "Coal is cheap.")
        assert isinstance(result, SelectionKept)
        assert backend.payloads == [
            {"header_context": "Energy", "previous_sentence": "Nuclear is safe.", "sentence": "Coal is cheap."}
        ]

    @pytest.mark.asyncio
    async def test_dropped_sentence(self):
        result = await SelectionStage(StaticBackend({"keep": False, "reason": "rhetoric"})).select("", "", "Wow.")
        assert isinstance(result, SelectionDropped)


class TestDecompositionStage:
    """Tests for decomposition and its local fast path."""

    @pytest.mark.asyncio
    async def test_prepositional_sentence_is_one_claim(self):
        backend = StaticBackend({"claims": ["should not be called"]})
        claims = await DecompositionStage(backend).decompose(
            "", "The minimum wage should be raised to 20 dollars per hour."
        )
        assert claims == ["The minimum wage should be raised to 20 dollars per hour."]
        assert backend.payloads == []

    @pytest.mark.asyncio
    async def test_meta_sentence_is_one_claim(self):
        backend = StaticBackend({"claims": ["unused"]})
        claims = await DecompositionStage(backend).decompose("", "Researchers found that coal is cheap but dirty")
        assert claims == ["Researchers found that coal is cheap but dirty."]
        assert backend.payloads == []

    @pytest.mark.asyncio
    async def test_split_on_but(self):
        backend = StaticBackend({"claims": ["Coal is cheap", "Coal pollutes heavily."]})
        claims = await DecompositionStage(backend).decompose("Energy", "Coal is cheap but pollutes heavily.")
        assert claims == ["Coal is cheap.", "Coal pollutes heavily."]
        assert backend.payloads == [{"header_context": "Energy", "sentence": "Coal is cheap but pollutes heavily."}]

    @pytest.mark.asyncio
    async def test_duplicates_removed(self):
        backend = StaticBackend({"claims": ["Coal is cheap.", "coal is cheap", "Coal pollutes."]})
        claims = await DecompositionStage(backend).decompose("", "Coal is cheap and coal pollutes.")
        assert claims == ["Coal is cheap.", "Coal pollutes."]


class TestGraphExtractionStage:
    """Tests for graph extraction."""

    @pytest.mark.asyncio
    async def test_core_and_modifiers(self):
        backend = StaticBackend({
            "core": {"subject": "Social media", "predicate": "should be", "object": "banned"},
            "modifiers": [{"prep": "for", "value": "children under 16"}],
        })
        out = await GraphExtractionStage(backend).extract("Social media should be banned for children under 16.", "")
        assert out.core.predicate == "should be"
        assert [(m.prep, m.value) for m in out.modifiers] == [("for", "children under 16")]


class TestRelationLinkingStage:
    """Tests for relation linking."""

    CLAIMS = [
        RelationClaim(index=0, text="Sales fell.", core_triple="(Sales | fell | sharply)"),
        RelationClaim(index=1, text="Prices rose.", core_triple="(Prices | rose | fast)"),
    ]

    @pytest.mark.asyncio
    async def test_because_links_effect_to_cause(self):
        backend = StaticBackend({"relations": [{"from": 0, "to": 1, "predicate": "because"}]})
        relations = await RelationLinkingStage(backend).link("Sales fell because prices rose.", self.CLAIMS)
        assert [(r.from_, r.to, r.predicate) for r in relations] == [(0, 1, "because")]
        assert backend.payloads[0]["claims"][0] == {
            "index": 0,
            "text": "Sales fell.",
            "core_triple": "(Sales | fell | sharply)",
        }

    @pytest.mark.asyncio
    async def test_unknown_index_rejected(self):
        backend = StaticBackend({"relations": [{"from": 0, "to": 5, "predicate": "because"}]})
        with pytest.raises(SchemaValidationError):
            await RelationLinkingStage(backend).link("Sales fell because prices rose.", self.CLAIMS)

    @pytest.mark.asyncio
    async def test_unknown_predicate_rejected(self):
        backend = StaticBackend({"relations": [{"from": 0, "to": 1, "predicate": "causes"}]})
        with pytest.raises(SchemaValidationError):
            await RelationLinkingStage(backend).link("Sales fell because prices rose.", self.CLAIMS)

    @pytest.mark.asyncio
    async def test_no_relations(self):
        relations = await RelationLinkingStage(StaticBackend({"relations": []})).link("Sales fell.", self.CLAIMS)
        assert relations == []


class TestStanceVerificationStage:
    """Stance output must contain exactly one entry per claim."""

    CLAIMS = [
        StanceClaim(stable_key="k1", text="Nuclear has the lowest death rate.", triple="Nuclear | has | lowest death rate"),
        StanceClaim(stable_key="k2", text="Chernobyl caused deaths.", triple="Chernobyl | caused | deaths"),
    ]

    @staticmethod
    def _entry(key: str, stance: str = "SUPPORTS") -> dict:
        return {"stableKey": key, "alignsWithStance": stance == "SUPPORTS", "suggestedStance": stance}

    @pytest.mark.asyncio
    async def test_one_entry_per_claim(self):
        backend = StaticBackend({"verifications": [self._entry("k1"), self._entry("k2", "REFUTES")]})
        result = await StanceVerificationStage(backend).verify("Nuclear is safest.", Stance.SUPPORTS, self.CLAIMS)
        assert set(result) == {"k1", "k2"}
        assert result["k2"].suggested_stance == Stance.REFUTES
        assert backend.payloads[0]["userStance"] == "SUPPORTS"
        assert backend.payloads[0]["claims"][0]["stableKey"] == "k1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "entries",
        [
            ["k1"],                 # omission
            ["k1", "k2", "k2"],     # duplicate
            ["k1", "k2", "k3"],     # unknown key
        ],
    )
    async def test_incomplete_output_rejected(self, entries):
        backend = StaticBackend({"verifications": [self._entry(key) for key in entries]})
        with pytest.raises(SchemaValidationError):
            await StanceVerificationStage(backend).verify("Nuclear is safest.", Stance.SUPPORTS, self.CLAIMS)
