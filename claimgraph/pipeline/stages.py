"""Model-backed pipeline stages.

Each stage wraps an injected ``StageBackend``: it serializes the input
contract, bounds the call with a timeout and validates the decoded response
against the output contract. Any deviation raises ``SchemaValidationError``.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, ClassVar, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from claimgraph.errors import ExternalCallError, SchemaValidationError, StageError
from claimgraph.llm.chains import StageBackend
from claimgraph.models import Stance, StageName
from claimgraph.models.contracts import (
    DecompositionInput,
    DecompositionOutput,
    GraphInput,
    GraphOutput,
    Relation,
    RelationClaim,
    RelationInput,
    RelationOutput,
    SelectionInput,
    SelectionOutput,
    StageContract,
    StanceClaim,
    StanceInput,
    StanceOutput,
    StanceVerification,
)
from claimgraph.processing.claims import (
    dedupe_strings,
    ensure_period,
    needs_decomposition,
    parse_meta_claim,
)

logger = structlog.get_logger(__name__)


@dataclass
class CallLedger:
    """Counts external stage calls and their failures."""

    attempted: int = 0
    failed: int = 0

    def merge(self, other: "CallLedger") -> None:
        self.attempted += other.attempted
        self.failed += other.failed

    @property
    def total_outage(self) -> bool:
        return self.attempted > 0 and self.failed == self.attempted


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{exc.error_count()} validation error(s); first at {location}: {first.get('msg')}"


class ContractStage:
    """Base class: one backend call validated against ``output_type``."""

    name: ClassVar[StageName]
    output_type: ClassVar[Any]

    def __init__(self, backend: StageBackend, timeout_seconds: float = 60.0):
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self._adapter = TypeAdapter(self.output_type)

    async def call(self, payload: StageContract, ledger: Optional[CallLedger] = None) -> Any:
        """Run the backend on ``payload`` and return the validated output.

        Raises:
            ExternalCallError: If the call times out or the backend fails.
            SchemaValidationError: If the response violates the output contract.
        """
        ledger = ledger if ledger is not None else CallLedger()
        ledger.attempted += 1
        try:
            raw = await asyncio.wait_for(
                self.backend.run(payload.model_dump(by_alias=True, mode="json")),
                timeout=self.timeout_seconds,
            )
            output = self._adapter.validate_python(raw)
            logger.debug("stage_complete", stage=self.name.value)
            return output
        except asyncio.TimeoutError as exc:
            ledger.failed += 1
            raise ExternalCallError(self.name.value, f"timed out after {self.timeout_seconds}s") from exc
        except ValidationError as exc:
            ledger.failed += 1
            raise SchemaValidationError(self.name.value, _describe_validation_error(exc)) from exc
        except StageError:
            ledger.failed += 1
            raise
        except Exception as exc:
            # Any backend may be injected; its transport errors are not ours to name
            ledger.failed += 1
            raise ExternalCallError(self.name.value, f"{type(exc).__name__}: {exc}") from exc


class SelectionStage(ContractStage):
    """Keeps or drops a sentence and applies minimal normalization."""

    name = StageName.SELECTION
    output_type = SelectionOutput

    async def select(
        self,
        header_context: str,
        previous_sentence: str,
        sentence: str,
        ledger: Optional[CallLedger] = None,
    ):
        payload = SelectionInput(
            header_context=header_context,
            previous_sentence=previous_sentence,
            sentence=sentence,
        )
        return await self.call(payload, ledger)


class DecompositionStage(ContractStage):
    """Splits a kept sentence into ordered atomic claims.

    Sentences without a discourse marker, and sentences that already are an
    attribution ("X found that P."), are returned as-is without a backend call.
    """

    name = StageName.DECOMPOSITION
    output_type = DecompositionOutput

    async def decompose(
        self,
        header_context: str,
        sentence: str,
        ledger: Optional[CallLedger] = None,
    ) -> list[str]:
        terminated = ensure_period(sentence)
        if parse_meta_claim(terminated) is not None or not needs_decomposition(sentence):
            return [terminated]

        output: DecompositionOutput = await self.call(
            DecompositionInput(header_context=header_context, sentence=sentence),
            ledger,
        )
        return dedupe_strings([ensure_period(claim) for claim in output.claims])


class GraphExtractionStage(ContractStage):
    """Extracts one core (S, P, O) and its prepositional modifiers from a claim."""

    name = StageName.GRAPH_EXTRACTION
    output_type = GraphOutput

    async def extract(
        self,
        claim: str,
        sentence_context: str,
        ledger: Optional[CallLedger] = None,
    ) -> GraphOutput:
        return await self.call(GraphInput(claim=claim, sentence_context=sentence_context), ledger)


class RelationLinkingStage(ContractStage):
    """Recovers explicit discourse relations between claims of one sentence."""

    name = StageName.RELATION_LINKING
    output_type = RelationOutput

    async def link(
        self,
        sentence: str,
        claims: list[RelationClaim],
        ledger: Optional[CallLedger] = None,
    ) -> list[Relation]:
        output: RelationOutput = await self.call(RelationInput(sentence=sentence, claims=claims), ledger)

        known = {claim.index for claim in claims}
        for relation in output.relations:
            if relation.from_ not in known or relation.to not in known:
                if ledger is not None:
                    ledger.failed += 1
                raise SchemaValidationError(
                    self.name.value,
                    f"relation {relation.from_}->{relation.to} references an unknown claim index",
                )
        return output.relations


class StanceVerificationStage(ContractStage):
    """Classifies each claim as supporting or refuting the parent claim."""

    name = StageName.STANCE_VERIFICATION
    output_type = StanceOutput

    async def verify(
        self,
        parent_claim: str,
        user_stance: Stance,
        claims: list[StanceClaim],
        ledger: Optional[CallLedger] = None,
    ) -> dict[str, StanceVerification]:
        """Returns verifications keyed by stable key, exactly one per input claim."""
        output: StanceOutput = await self.call(
            StanceInput(parent_claim=parent_claim, user_stance=user_stance, claims=claims),
            ledger,
        )

        expected = {claim.stable_key for claim in claims}
        by_key: dict[str, StanceVerification] = {}
        problems: list[str] = []
        for verification in output.verifications:
            if verification.stable_key in by_key:
                problems.append(f"duplicate {verification.stable_key}")
            elif verification.stable_key not in expected:
                problems.append(f"unknown {verification.stable_key}")
            by_key[verification.stable_key] = verification
        missing = expected - by_key.keys()
        if missing:
            problems.append(f"{len(missing)} claim(s) without a verification")

        if problems:
            if ledger is not None:
                ledger.failed += 1
            raise SchemaValidationError(self.name.value, "; ".join(problems))
        return by_key


@dataclass
class PipelineStages:
    """All model-backed stages for one pipeline instance."""

    selection: SelectionStage
    decomposition: DecompositionStage
    graph_extraction: GraphExtractionStage
    relation_linking: RelationLinkingStage
    stance_verification: StanceVerificationStage

    @classmethod
    def from_backends(cls, backends, timeout_seconds: float) -> "PipelineStages":
        return cls(
            selection=SelectionStage(backends.selection, timeout_seconds),
            decomposition=DecompositionStage(backends.decomposition, timeout_seconds),
            graph_extraction=GraphExtractionStage(backends.graph_extraction, timeout_seconds),
            relation_linking=RelationLinkingStage(backends.relation_linking, timeout_seconds),
            stance_verification=StanceVerificationStage(backends.stance_verification, timeout_seconds),
        )
