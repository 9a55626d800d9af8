"""Error taxonomy for the extraction pipeline.

Stage-level failures (schema, transport) are recoverable: the orchestrator
drops the affected sentence or claim and records a warning. Input errors and
complete backend outages abort the whole submission.
"""


class ClaimGraphError(Exception):
    """Base class for all claimgraph errors."""

    pass


class StageError(ClaimGraphError):
    """Failure attributed to a single pipeline stage call."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


class SchemaValidationError(StageError):
    """A stage backend returned output that does not satisfy its contract."""

    pass


class ExternalCallError(StageError):
    """A stage backend or collaborator call timed out or failed in transport."""

    pass


class InvariantViolation(ClaimGraphError):
    """A triple or edge would break a structural invariant of the term model."""

    pass


class InputError(ClaimGraphError):
    """The submission itself is unusable (e.g. empty text)."""

    pass


class PipelineOutageError(ClaimGraphError):
    """Every external stage call failed for every sentence of a submission."""

    pass
