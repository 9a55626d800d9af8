"""Extraction orchestrator: runs one submission through every stage.

Per-sentence work (selection, decomposition, graph extraction) fans out
under a semaphore and is re-joined by sentence index before relation
linking. Failures are isolated per sentence or per claim and surface as
warnings on the result; only empty input and a complete backend outage
abort the submission.
"""

import asyncio
from typing import Any, Iterable, Optional

import structlog

from claimgraph.config.settings import Settings, get_settings
from claimgraph.errors import (
    ClaimGraphError,
    InputError,
    InvariantViolation,
    PipelineOutageError,
    StageError,
)
from claimgraph.extraction.segmenter import (
    SentenceSplitter,
    create_sentence_splitter,
    split_markdown_into_sentences,
)
from claimgraph.llm.chains import StageBackends
from claimgraph.models import (
    ClaimResult,
    EdgeKind,
    ExtractionOptions,
    ExtractionResult,
    NestedEdge,
    ProcessingWarning,
    SentenceResult,
    StageName,
    Stance,
    TermRef,
    Triple,
    TripleRef,
    WarningType,
    term_label,
)
from claimgraph.models.contracts import GraphOutput, RelationClaim, SelectionDropped, StanceClaim
from claimgraph.processing.canonical import atom, make_edge, make_triple, triple_ref
from claimgraph.processing.claims import (
    PrepositionalPhrase,
    edge_kind_for_predicate,
    has_relation_marker,
    parse_conditional,
    parse_meta_claim,
    split_prepositional_phrase,
    strip_outer_quotes,
)
from claimgraph.processing.dedup import DedupReconciler, DedupResolver

from .graph import create_pipeline_app, sentence_ledger
from .stages import CallLedger, PipelineStages
from .state import ExtractionState, SentenceWork, create_initial_state, warning_for

logger = structlog.get_logger(__name__)

DEFAULT_STAGE_TIMEOUT_SECONDS = 60.0


def build_header_context(header_path: list[str], options: ExtractionOptions) -> str:
    """Theme and header path joined with '>', plus the parent claim when replying."""
    context = " > ".join(
        part for part in [(options.theme_title or "").strip(), *header_path] if part
    )
    parent = (options.parent_claim_text or "").strip()
    if parent:
        reply = f'In reply to: "{parent}"'
        context = f"{context} | {reply}" if context else reply
    return context


def stage_timeout_for(settings: Settings, backends: StageBackends) -> float:
    """Per-call stage timeout: the configured value, else the backends' retry budget."""
    budget = backends.call_budget_seconds
    configured = settings.stage_timeout_seconds
    if configured is None:
        return budget or DEFAULT_STAGE_TIMEOUT_SECONDS
    if budget and configured < budget:
        # Transport retries will be cut off by the stage timeout
        logger.warning("stage_timeout_below_retry_budget", stage_timeout=configured, retry_budget=budget)
    return configured


def _unique_triples(triples: Iterable[Triple]) -> list[Triple]:
    unique: dict[str, Triple] = {}
    for triple in triples:
        unique.setdefault(triple.stable_key, triple)
    return list(unique.values())


def _core_label(triple: Triple, wrap: bool = False) -> str:
    text = f"{term_label(triple.subject)} | {triple.predicate.label} | {term_label(triple.object)}"
    return f"({text})" if wrap else text


class ExtractionPipeline:
    """Claim extraction pipeline over injected stage backends.

    Args:
        backends: Stage backends, built once per process.
        settings: Optional custom settings.
        resolver: Store-of-record lookups; dedup is skipped without one.
        splitter: Sentence splitter; chosen from settings when omitted.
    """

    def __init__(
        self,
        backends: StageBackends,
        settings: Optional[Settings] = None,
        resolver: Optional[DedupResolver] = None,
        splitter: Optional[SentenceSplitter] = None,
    ):
        self.settings = settings or get_settings()
        self.stage_timeout = stage_timeout_for(self.settings, backends)
        self.stages = PipelineStages.from_backends(backends, self.stage_timeout)
        self.splitter = splitter or create_sentence_splitter(self.settings)
        self.reconciler = DedupReconciler.from_settings(resolver, self.settings) if resolver else None
        self.max_depth = self.settings.max_nesting_depth
        self._app = create_pipeline_app(self)

    @property
    def has_resolver(self) -> bool:
        return self.reconciler is not None

    async def run(self, text: str, options: Optional[ExtractionOptions] = None) -> ExtractionResult:
        """Extract triples and nested edges from one submission.

        Raises:
            InputError: If ``text`` is empty or whitespace only.
            PipelineOutageError: If every external stage call failed.
        """
        if not text or not text.strip():
            raise InputError("Submission text is empty")
        options = options or ExtractionOptions()

        logger.info("extraction_start", text_length=len(text), reply=options.wants_stance_check)
        final: ExtractionState = await self._app.ainvoke(create_initial_state(text, options))

        works = final.get("works", [])
        ledger = sentence_ledger(final)
        if ledger.total_outage:
            raise PipelineOutageError(
                f"All {ledger.attempted} stage calls failed across {len(works)} sentence(s)"
            )

        warnings = [w for work in works for w in work.warnings] + final.get("warnings", [])
        result = ExtractionResult(
            sentences=[work.result for work in works],
            edges=final.get("edges", []),
            nested_triples=_unique_triples(t for work in works for t in work.sub_triples),
            warnings=warnings,
            dedup=final.get("dedup"),
        )
        logger.info(
            "extraction_complete",
            sentences=len(result.sentences),
            triples=len(result.triples),
            edges=len(result.edges),
            warnings=len(result.warnings),
            stage_calls=ledger.attempted,
        )
        return result

    # =========================================================================
    # Nodes
    # =========================================================================

    async def segmenting(self, state: ExtractionState) -> dict[str, Any]:
        segments = list(split_markdown_into_sentences(state["text"], self.splitter))
        logger.info("segmentation_complete", segments=len(segments))
        return {"segments": segments}

    async def per_sentence(self, state: ExtractionState) -> dict[str, Any]:
        options = state["options"]
        segments = state.get("segments", [])

        works = [
            SentenceWork(
                segment=segment,
                header_context=build_header_context(segment.header_path, options),
                previous_sentence=segments[i - 1].sentence if i > 0 else "",
                result=SentenceResult(
                    index=i,
                    header_path=list(segment.header_path),
                    sentence=segment.sentence,
                ),
            )
            for i, segment in enumerate(segments)
        ]

        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def bounded(work: SentenceWork) -> None:
            async with semaphore:
                await self._process_sentence(work, options)

        await asyncio.gather(*(bounded(work) for work in works))

        logger.info(
            "sentences_processed",
            sentences=len(works),
            kept=sum(1 for work in works if work.result.selected_sentence is not None),
            claims=sum(len(work.result.claims) for work in works),
        )
        return {"works": works}

    async def relation_linking(self, state: ExtractionState) -> dict[str, Any]:
        works = state.get("works", [])
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def bounded(work: SentenceWork) -> None:
            async with semaphore:
                await self._link_relations(work)

        await asyncio.gather(*(bounded(work) for work in works))
        return {"works": works}

    async def edge_building(self, state: ExtractionState) -> dict[str, Any]:
        edges: list[NestedEdge] = []
        seen: set[str] = set()
        warnings: list[ProcessingWarning] = []

        def push(edge: NestedEdge) -> None:
            if edge.stable_key in seen:
                return
            seen.add(edge.stable_key)
            edges.append(edge)

        for work in state.get("works", []):
            for edge in work.edges:
                push(edge)
            for relation in work.relations:
                source = work.claim_triples[relation.from_]
                target = work.claim_triples[relation.to]
                try:
                    edge = make_edge(
                        edge_kind_for_predicate(relation.predicate),
                        relation.predicate,
                        triple_ref(source),
                        triple_ref(target),
                        max_depth=self.max_depth,
                    )
                except InvariantViolation as e:
                    warnings.append(warning_for(e, StageName.EDGE_BUILDING, work.index))
                    continue
                push(edge)

        logger.info("edge_building_complete", edges=len(edges), rejected=len(warnings))
        return {"edges": edges, "warnings": warnings}

    async def stance_verification(self, state: ExtractionState) -> dict[str, Any]:
        options = state["options"]
        works = state.get("works", [])

        claims: list[StanceClaim] = []
        seen: set[str] = set()
        for work in works:
            for claim in work.result.keyed_claims:
                key = claim.triple.stable_key
                if key in seen:
                    continue
                seen.add(key)
                claims.append(StanceClaim(stable_key=key, text=claim.claim, triple=_core_label(claim.triple)))

        if not claims:
            return {"warnings": []}

        limit = self.settings.max_stance_claims
        if len(claims) > limit:
            logger.warning("stance_verification_skipped", claims=len(claims), limit=limit)
            return {"warnings": [ProcessingWarning(
                stage=StageName.STANCE_VERIFICATION,
                warning_type=WarningType.LIMIT_EXCEEDED,
                message=f"{len(claims)} claims exceeds limit of {limit}",
            )]}

        user_stance: Stance = options.user_stance
        try:
            verifications = await self.stages.stance_verification.verify(
                options.parent_claim_text.strip(), user_stance, claims, CallLedger()
            )
        except StageError as e:
            logger.warning("stance_verification_failed", stage=e.stage, error=e.message)
            return {"warnings": [warning_for(e, StageName.STANCE_VERIFICATION)]}

        aligned = 0
        for work in works:
            for claim in work.result.keyed_claims:
                verification = verifications[claim.triple.stable_key]
                claim.suggested_stance = verification.suggested_stance
                claim.stance_aligned = verification.suggested_stance == user_stance
                claim.stance_reason = verification.reason
                aligned += claim.stance_aligned

        logger.info("stance_verification_complete", claims=len(claims), aligned=aligned)
        return {"works": works, "warnings": []}

    async def dedup(self, state: ExtractionState) -> dict[str, Any]:
        works = state.get("works", [])
        triples = [
            *(triple for work in works for triple in work.claim_triples.values()),
            *(triple for work in works for triple in work.sub_triples),
        ]
        try:
            report = await self.reconciler.reconcile(triples, state.get("edges", []))
        except ClaimGraphError as e:
            logger.warning("dedup_failed", error=str(e))
            return {"dedup": None, "warnings": [warning_for(e, StageName.DEDUP)]}
        return {"dedup": report}

    # =========================================================================
    # Per-sentence steps
    # =========================================================================

    async def _process_sentence(self, work: SentenceWork, options: ExtractionOptions) -> None:
        log = logger.bind(sentence_index=work.index)
        raw = strip_outer_quotes(work.segment.sentence) or work.segment.sentence

        try:
            selected = await self.stages.selection.select(
                work.header_context, work.previous_sentence, raw, work.ledger
            )
        except StageError as e:
            log.warning("selection_failed", error=e.message)
            work.warn(e, StageName.SELECTION)
            work.result.dropped_reason = f"selection failed: {e.message}"
            return

        if isinstance(selected, SelectionDropped):
            log.debug("sentence_dropped", reason=selected.reason)
            work.result.dropped_reason = selected.reason
            return

        sentence = selected.sentence or raw
        work.result.selected_sentence = sentence
        work.result.kind = selected.kind
        work.result.needs_context = selected.needs_context
        work.result.missing = list(selected.missing)
        parent = (options.parent_claim_text or "").strip()
        work.sentence_context = " ".join(part for part in (parent, work.previous_sentence, sentence) if part)

        try:
            claims = await self.stages.decomposition.decompose(work.header_context, sentence, work.ledger)
        except StageError as e:
            log.warning("decomposition_failed", error=e.message)
            work.warn(e, StageName.DECOMPOSITION)
            work.result.dropped_reason = f"decomposition failed: {e.message}"
            return

        for claim in claims:
            await self._extract_claim(work, claim)

        log.debug("sentence_processed", claims=len(work.result.claims), edges=len(work.edges))

    async def _graph(self, work: SentenceWork, text: str) -> Optional[GraphOutput]:
        try:
            return await self.stages.graph_extraction.extract(text, work.sentence_context, work.ledger)
        except StageError as e:
            logger.warning("graph_extraction_failed", sentence_index=work.index, error=e.message)
            work.warn(e, StageName.GRAPH_EXTRACTION)
            return None

    def _canonical(self, work: SentenceWork, graph: Optional[GraphOutput]) -> Optional[Triple]:
        """Core triple of ``graph`` plus its modifier edges.

        A modifier value or core subject that is itself a prepositional
        phrase becomes a sub-triple, reached only through a modifier edge.
        """
        if graph is None:
            return None
        core = graph.core
        try:
            triple = make_triple(core.subject, core.predicate, core.object, max_depth=self.max_depth)
        except InvariantViolation as e:
            work.warn(e, StageName.GRAPH_EXTRACTION)
            return None

        core_ref = triple_ref(triple)
        for modifier in graph.modifiers:
            phrase = split_prepositional_phrase(modifier.value)
            value = self._sub_triple(work, phrase) if phrase else None
            self._add_edge(work, EdgeKind.MODIFIER, modifier.prep, core_ref, value or atom(modifier.value))

        phrase = split_prepositional_phrase(core.subject)
        if phrase:
            subject = self._sub_triple(work, phrase)
            if subject is not None:
                self._add_edge(work, EdgeKind.MODIFIER, phrase.preposition, core_ref, subject)
        return triple

    def _sub_triple(self, work: SentenceWork, phrase: PrepositionalPhrase) -> Optional[TripleRef]:
        try:
            triple = make_triple(phrase.head, phrase.preposition, phrase.complement, max_depth=self.max_depth)
        except InvariantViolation as e:
            work.warn(e, StageName.GRAPH_EXTRACTION)
            return None
        # Not a discourse unit: never added to the claims, so claim indices stay put
        work.sub_triples.append(triple)
        return triple_ref(triple)

    def _add_edge(self, work: SentenceWork, kind: EdgeKind, predicate: str, subject: TermRef, object_: TermRef) -> None:
        try:
            work.edges.append(make_edge(kind, predicate, subject, object_, max_depth=self.max_depth))
        except InvariantViolation as e:
            work.warn(e, StageName.EDGE_BUILDING)

    def _add_claim(self, work: SentenceWork, claim: str, triple: Optional[Triple]) -> None:
        index = len(work.result.claims)
        work.result.claims.append(ClaimResult(index=index, claim=claim, triple=triple))
        if triple is not None:
            work.claim_triples[index] = triple

    async def _extract_claim(self, work: SentenceWork, claim: str) -> None:
        meta = parse_meta_claim(claim)
        if meta is not None:
            proposition = self._canonical(work, await self._graph(work, meta.proposition))
            self._add_claim(work, claim, proposition)
            if proposition is not None:
                self._add_edge(work, EdgeKind.META, meta.verb, atom(meta.source), triple_ref(proposition))
            return

        conditional = parse_conditional(claim)
        if conditional is not None:
            main = self._canonical(work, await self._graph(work, conditional.main))
            self._add_claim(work, claim, main)
            if main is None:
                return
            condition = self._canonical(work, await self._graph(work, conditional.condition))
            if condition is not None:
                self._add_claim(work, conditional.condition, condition)
                self._add_edge(
                    work, EdgeKind.CONDITIONAL, conditional.keyword, triple_ref(main), triple_ref(condition)
                )
            return

        self._add_claim(work, claim, self._canonical(work, await self._graph(work, claim)))

    async def _link_relations(self, work: SentenceWork) -> None:
        sentence = work.result.selected_sentence
        if not sentence or len(work.claim_triples) < 2 or not has_relation_marker(sentence):
            return

        claims = [
            RelationClaim(index=claim.index, text=claim.claim, core_triple=_core_label(claim.triple, wrap=True))
            for claim in work.result.keyed_claims
        ]
        try:
            work.relations = await self.stages.relation_linking.link(sentence, claims, work.ledger)
        except StageError as e:
            logger.warning("relation_linking_failed", sentence_index=work.index, error=e.message)
            work.warn(e, StageName.RELATION_LINKING)


def run_extraction(
    text: str,
    backends: StageBackends,
    options: Optional[ExtractionOptions] = None,
    settings: Optional[Settings] = None,
    resolver: Optional[DedupResolver] = None,
) -> ExtractionResult:
    """Synchronous wrapper around ``ExtractionPipeline.run``."""
    pipeline = ExtractionPipeline(backends, settings=settings, resolver=resolver)
    return asyncio.run(pipeline.run(text, options))
