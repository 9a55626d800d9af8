"""Dedup reconciliation of canonical keys against the store of record.

Before anything is materialized downstream, every atom label and statement of
a batch is grouped by its content key and looked up once. Only keys absent
from the store are reported as new.
"""

import asyncio
import uuid
from typing import Iterable, Iterator, Literal, Optional, Protocol, Sequence, TypeVar, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from claimgraph.config.settings import Settings, get_settings
from claimgraph.errors import ExternalCallError, InvariantViolation
from claimgraph.hashing import atom_key, normalize_atom_label
from claimgraph.models import AtomRef, DedupReport, NestedEdge, StageName, TermRef, Triple, TripleRef
from claimgraph.processing.canonical import atom

logger = structlog.get_logger(__name__)

Combination = tuple[str, str, str]
Statement = Union[Triple, NestedEdge]

NAMESPACE_TERM = uuid.UUID("5b0e7c1e-9a43-4d2f-8f1a-3c6de2a0b7d4")

_STAGE = StageName.DEDUP.value


class ResolvedAtom(BaseModel):
    """An atom already known to the store of record."""

    normalized_label: str
    canonical_id: str


class DedupResolver(Protocol):
    """Lookup interface provided by the store of record.

    Both calls must receive deduplicated input and are side-effect free.
    """

    async def resolve_atoms(self, labels: list[str]) -> list[ResolvedAtom]: ...

    async def resolve_triples(self, combinations: list[Combination]) -> dict[str, Optional[str]]: ...


def combination_key(subject_id: str, predicate_id: str, object_id: str) -> str:
    """Canonical key of an (S, P, O) id combination, shared with the store."""
    return f"{subject_id}-{predicate_id}-{object_id}"


def statement_parts(statement: Statement) -> tuple[TermRef, AtomRef, TermRef]:
    """Subject, atom predicate and object of a triple or nested edge."""
    match statement:
        case Triple(subject=subject, predicate=predicate, object=object_):
            return subject, predicate, object_
        case NestedEdge(subject=subject, predicate=predicate, object=object_):
            return subject, atom(predicate), object_
    raise InvariantViolation(f"Unsupported statement: {statement!r}")


def group_atom_labels(labels: Iterable[str]) -> dict[str, str]:
    """Group labels by atom key, keeping the first display form of each group."""
    groups: dict[str, str] = {}
    for label in labels:
        display = normalize_atom_label(label)
        if display:
            groups.setdefault(atom_key(display), display)
    return groups


def atom_labels(statements: Iterable[Statement]) -> Iterator[str]:
    """Labels of every atom referenced directly by the statements."""
    for statement in statements:
        for ref in statement_parts(statement):
            if isinstance(ref, AtomRef):
                yield ref.label


def _batches(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class DedupReconciler:
    """Batches and deduplicates lookups against a ``DedupResolver``."""

    def __init__(
        self,
        resolver: DedupResolver,
        batch_size: int = 300,
        max_concurrency: int = 2,
        timeout_seconds: float = 10.0,
    ):
        self.resolver = resolver
        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @classmethod
    def from_settings(cls, resolver: DedupResolver, settings: Settings | None = None) -> "DedupReconciler":
        settings = settings or get_settings()
        return cls(
            resolver,
            batch_size=settings.dedup_batch_size,
            max_concurrency=settings.dedup_max_concurrency,
            timeout_seconds=settings.dedup_timeout_seconds,
        )

    async def reconcile(
        self,
        triples: Sequence[Triple],
        edges: Sequence[NestedEdge] = (),
    ) -> DedupReport:
        """Resolve atoms, then statements depth by depth.

        Raises:
            ExternalCallError: If a resolver call times out or fails.
        """
        statements: dict[str, Statement] = {}
        for statement in [*triples, *edges]:
            statements.setdefault(statement.stable_key, statement)

        atoms = group_atom_labels(atom_labels(statements.values()))
        atom_ids = await self._resolve_atoms(atoms)

        statement_ids: dict[str, str] = {}
        pending = {key: statement_parts(s) for key, s in statements.items()}
        rounds = 0
        while pending:
            ready: dict[str, Combination] = {}
            waiting: dict[str, tuple[TermRef, AtomRef, TermRef]] = {}
            for key, parts in pending.items():
                state, ids = self._combination_for(parts, atom_ids, statement_ids, pending)
                if state == "ready":
                    ready[key] = ids  # type: ignore[assignment]
                elif state == "waiting":
                    waiting[key] = parts
            if not ready:
                break
            statement_ids.update(await self._resolve_statements(ready))
            pending = waiting
            rounds += 1

        report = DedupReport(
            atom_ids=atom_ids,
            new_atom_keys=[key for key in atoms if key not in atom_ids],
            statement_ids=statement_ids,
            new_statement_keys=[key for key in statements if key not in statement_ids],
        )
        logger.info(
            "dedup_reconciled",
            atoms=len(atoms),
            known_atoms=len(atom_ids),
            statements=len(statements),
            known_statements=len(statement_ids),
            rounds=rounds,
        )
        return report

    @staticmethod
    def _combination_for(
        parts: tuple[TermRef, AtomRef, TermRef],
        atom_ids: dict[str, str],
        statement_ids: dict[str, str],
        pending: dict,
    ) -> tuple[Literal["ready", "waiting", "new"], Optional[Combination]]:
        ids: list[str] = []
        waiting = False
        for ref in parts:
            match ref:
                case AtomRef(atom_key=key):
                    canonical_id = atom_ids.get(key)
                case TripleRef(triple_key=key):
                    canonical_id = statement_ids.get(key)
                    if canonical_id is None and key in pending:
                        waiting = True
                        continue
            if canonical_id is None:
                # A statement with an unknown part cannot exist in the store.
                return "new", None
            ids.append(canonical_id)
        if waiting:
            return "waiting", None
        return "ready", (ids[0], ids[1], ids[2])

    async def _call(self, coro, what: str):
        async with self._semaphore:
            try:
                return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise ExternalCallError(_STAGE, f"{what} timed out after {self.timeout_seconds}s") from exc
            except ExternalCallError:
                raise
            except Exception as exc:
                raise ExternalCallError(_STAGE, f"{what} failed: {type(exc).__name__}: {exc}") from exc

    async def _resolve_atoms(self, atoms: dict[str, str]) -> dict[str, str]:
        labels = list(atoms.values())
        if not labels:
            return {}

        batches = _batches(labels, self.batch_size)
        logger.debug("dedup_resolve_atoms", labels=len(labels), batches=len(batches))
        responses = await asyncio.gather(
            *(self._call(self.resolver.resolve_atoms(batch), "resolve_atoms") for batch in batches)
        )

        atom_ids: dict[str, str] = {}
        for response in responses:
            for resolved in response:
                key = atom_key(resolved.normalized_label)
                if key in atoms:
                    atom_ids[key] = resolved.canonical_id
        return atom_ids

    async def _resolve_statements(self, ready: dict[str, Combination]) -> dict[str, str]:
        unique: dict[str, Combination] = {}
        for combination in ready.values():
            unique.setdefault(combination_key(*combination), combination)

        batches = _batches(list(unique.values()), self.batch_size)
        logger.debug("dedup_resolve_triples", combinations=len(unique), batches=len(batches))
        responses = await asyncio.gather(
            *(self._call(self.resolver.resolve_triples(batch), "resolve_triples") for batch in batches)
        )

        by_key: dict[str, Optional[str]] = {}
        for response in responses:
            by_key.update(response)

        found: dict[str, str] = {}
        for stable_key, combination in ready.items():
            canonical_id = by_key.get(combination_key(*combination))
            if canonical_id:
                found[stable_key] = canonical_id
        return found


# =============================================================================
# Resolver implementations
# =============================================================================

class InMemoryTermStore:
    """Content-addressed store of record kept in process memory.

    Canonical ids are uuid5 values derived from content keys, so registering
    the same atom or statement twice is a no-op.
    """

    def __init__(self) -> None:
        self._atoms: dict[str, str] = {}
        self._combinations: dict[str, str] = {}
        self._statements: dict[str, str] = {}
        self.atom_calls: list[list[str]] = []
        self.triple_calls: list[list[Combination]] = []

    def add_atom(self, label: str) -> str:
        key = atom_key(label)
        return self._atoms.setdefault(key, str(uuid.uuid5(NAMESPACE_TERM, f"atom:{key}")))

    def add_statement(self, statement: Statement) -> str:
        """Register a triple or edge; nested triples must be registered first."""
        ids: list[str] = []
        for ref in statement_parts(statement):
            match ref:
                case AtomRef(label=label):
                    ids.append(self.add_atom(label))
                case TripleRef(triple_key=key):
                    if key not in self._statements:
                        raise InvariantViolation(f"Nested triple {key} is not registered")
                    ids.append(self._statements[key])
        key = combination_key(*ids)
        canonical_id = self._combinations.setdefault(key, str(uuid.uuid5(NAMESPACE_TERM, f"triple:{key}")))
        self._statements[statement.stable_key] = canonical_id
        return canonical_id

    async def resolve_atoms(self, labels: list[str]) -> list[ResolvedAtom]:
        self.atom_calls.append(list(labels))
        resolved = []
        for label in labels:
            canonical_id = self._atoms.get(atom_key(label))
            if canonical_id:
                resolved.append(ResolvedAtom(normalized_label=normalize_atom_label(label), canonical_id=canonical_id))
        return resolved

    async def resolve_triples(self, combinations: list[Combination]) -> dict[str, Optional[str]]:
        self.triple_calls.append(list(combinations))
        return {
            combination_key(*combination): self._combinations.get(combination_key(*combination))
            for combination in combinations
        }


class _ResolvedAtomPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data: str
    term_id: Optional[str] = Field(None, alias="termId")


class ResolveAtomsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    atoms: list[_ResolvedAtomPayload] = Field(default_factory=list)

    @field_validator("atoms", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class ResolveTriplesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    by_key: dict[str, Optional[str]] = Field(default_factory=dict, alias="byKey")

    @field_validator("by_key", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return {} if value is None else value


ResponseT = TypeVar("ResponseT", ResolveAtomsResponse, ResolveTriplesResponse)


class HttpDedupResolver:
    """Resolver backed by the store-of-record HTTP API.

    Endpoints:
        POST {base_url}/resolve-atoms    {"labels": [...]}        -> {"atoms": [{"data", "termId"}]}
        POST {base_url}/resolve-triples  {"combinations": [...]}  -> {"byKey": {key: id | null}}
    """

    def __init__(self, base_url: str, timeout_s: float = 10.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client

    async def __aenter__(self) -> "HttpDedupResolver":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s))
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: dict, response_model: type[ResponseT]) -> ResponseT:
        url = f"{self.base_url}{path}"
        client = self._client or httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s))
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise ExternalCallError(_STAGE, f"POST {url} failed: {exc}") from exc
        finally:
            if client is not self._client:
                await client.aclose()

        if response.status_code >= 400:
            raise ExternalCallError(_STAGE, f"POST {url} returned {response.status_code}: {response.text[:300]}")
        try:
            return response_model.model_validate_json(response.content)
        except ValidationError as exc:
            raise ExternalCallError(
                _STAGE, f"POST {url} returned an unexpected body: {exc.error_count()} error(s), {response.text[:120]!r}"
            ) from exc

    async def resolve_atoms(self, labels: list[str]) -> list[ResolvedAtom]:
        data = await self._post("/resolve-atoms", {"labels": labels}, ResolveAtomsResponse)
        return [
            ResolvedAtom(normalized_label=item.data, canonical_id=item.term_id)
            for item in data.atoms
            if item.term_id
        ]

    async def resolve_triples(self, combinations: list[Combination]) -> dict[str, Optional[str]]:
        data = await self._post(
            "/resolve-triples", {"combinations": [list(c) for c in combinations]}, ResolveTriplesResponse
        )
        return data.by_key
