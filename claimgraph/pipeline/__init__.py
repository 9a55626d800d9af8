"""LangGraph pipeline orchestration."""

from .graph import build_pipeline, create_pipeline_app
from .orchestrator import ExtractionPipeline, build_header_context, run_extraction
from .stages import (
    CallLedger,
    DecompositionStage,
    GraphExtractionStage,
    PipelineStages,
    RelationLinkingStage,
    SelectionStage,
    StanceVerificationStage,
)
from .state import ExtractionState, SentenceWork

__all__ = [
    "ExtractionPipeline",
    "run_extraction",
    "build_header_context",
    "build_pipeline",
    "create_pipeline_app",
    "CallLedger",
    "PipelineStages",
    "SelectionStage",
    "DecompositionStage",
    "GraphExtractionStage",
    "RelationLinkingStage",
    "StanceVerificationStage",
    "ExtractionState",
    "SentenceWork",
]
