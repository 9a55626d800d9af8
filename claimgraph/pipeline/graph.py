"""LangGraph workflow definition for the extraction pipeline."""

from typing import Any, Protocol

import structlog
from langgraph.graph import END, START, StateGraph

from claimgraph.pipeline.stages import CallLedger
from claimgraph.pipeline.state import ExtractionState

logger = structlog.get_logger(__name__)



class ExtractionNodes(Protocol):
    """Node implementations bound to one pipeline instance."""

    has_resolver: bool

    async def segmenting(self, state: ExtractionState) -> dict[str, Any]: ...

    async def per_sentence(self, state: ExtractionState) -> dict[str, Any]: ...

    async def relation_linking(self, state: ExtractionState) -> dict[str, Any]: ...

    async def edge_building(self, state: ExtractionState) -> dict[str, Any]: ...

    async def stance_verification(self, state: ExtractionState) -> dict[str, Any]: ...

    async def dedup(self, state: ExtractionState) -> dict[str, Any]: ...


def sentence_ledger(state: ExtractionState) -> CallLedger:
    """Combined call ledger of every sentence processed so far."""
    ledger = CallLedger()
    for work in state.get("works", []):
        ledger.merge(work.ledger)
    return ledger


def should_continue_after_relation_linking(state: ExtractionState) -> str:
    """Stop when every external call of every sentence failed.

    Returns:
        'outage' on a complete backend outage, 'continue' otherwise.
    """
    ledger = sentence_ledger(state)
    if ledger.total_outage:
        logger.error("pipeline_stopping_backend_outage", attempted=ledger.attempted)
        return "outage"
    return "continue"


def build_pipeline(nodes: ExtractionNodes) -> StateGraph:
    """Build the LangGraph workflow for one submission.

    Args:
        nodes: Node implementations, usually an ``ExtractionPipeline``.

    Returns:
        StateGraph ready to compile.
    """
    logger.info("building_pipeline", dedup=nodes.has_resolver)

    def after_edge_building(state: ExtractionState) -> str:
        if state["options"].wants_stance_check:
            return "stance"
        return "dedup" if nodes.has_resolver else "done"

    def after_stance_verification(state: ExtractionState) -> str:
        return "dedup" if nodes.has_resolver else "done"

    workflow = StateGraph(ExtractionState)

    workflow.add_node("segmenting", nodes.segmenting)
    workflow.add_node("per_sentence", nodes.per_sentence)
    workflow.add_node("relation_linking", nodes.relation_linking)
    workflow.add_node("edge_building", nodes.edge_building)
    workflow.add_node("stance_verification", nodes.stance_verification)
    workflow.add_node("dedup", nodes.dedup)

    workflow.add_edge(START, "segmenting")
    workflow.add_edge("segmenting", "per_sentence")
    workflow.add_edge("per_sentence", "relation_linking")

    # Relation linking -> Edge building (unless the backends are down)
    workflow.add_conditional_edges(
        "relation_linking",
        should_continue_after_relation_linking,
        {
            "continue": "edge_building",
            "outage": END,
        },
    )

    workflow.add_conditional_edges(
        "edge_building",
        after_edge_building,
        {
            "stance": "stance_verification",
            "dedup": "dedup",
            "done": END,
        },
    )

    workflow.add_conditional_edges(
        "stance_verification",
        after_stance_verification,
        {
            "dedup": "dedup",
            "done": END,
        },
    )

    workflow.add_edge("dedup", END)

    return workflow


def create_pipeline_app(nodes: ExtractionNodes):
    """Create compiled pipeline application."""
    return build_pipeline(nodes).compile()
