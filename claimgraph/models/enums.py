"""Enumeration types for the pipeline models."""

from enum import Enum


class TripleOrigin(str, Enum):
    """Where a triple was produced."""

    APP = "app"
    AGENT = "agent"
    USER = "user"
    IMPORT = "import"
    SEED = "seed"


class EdgeKind(str, Enum):
    """Classes of nested edges between two term references."""

    RELATION = "relation"          # explicit connective: but, because, and...
    META = "meta"                  # attribution: "<source> found that <P>"
    CONDITIONAL = "conditional"    # if / unless / when
    MODIFIER = "modifier"          # prepositional qualifier on a core triple


class EdgeOrigin(str, Enum):
    """Who proposed a nested edge."""

    AGENT = "agent"
    USER = "user"


class Stance(str, Enum):
    """Declared or suggested stance of a reply toward its parent claim."""

    SUPPORTS = "SUPPORTS"
    REFUTES = "REFUTES"


class SentenceKind(str, Enum):
    """Classification emitted by the selection stage."""

    FACTUAL = "factual"
    NORMATIVE = "normative"
    PREFERENCE = "preference"
    QUESTION = "question"
    META = "meta"
    OTHER = "other"


class StageName(str, Enum):
    """Pipeline stages, in execution order."""

    SEGMENTATION = "segmentation"
    SELECTION = "selection"
    DECOMPOSITION = "decomposition"
    GRAPH_EXTRACTION = "graph_extraction"
    RELATION_LINKING = "relation_linking"
    EDGE_BUILDING = "edge_building"
    STANCE_VERIFICATION = "stance_verification"
    DEDUP = "dedup"


class WarningType(str, Enum):
    """Category of a recoverable processing problem."""

    SCHEMA_VALIDATION = "schema_validation"
    EXTERNAL_CALL = "external_call"
    INVARIANT_VIOLATION = "invariant_violation"
    LIMIT_EXCEEDED = "limit_exceeded"
