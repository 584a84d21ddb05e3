"""Whole-repository fulltext reindexing.

Enumerates every live document, splits the ordered list into fixed-size
batches and, for each batch:

1. classifies ids by fulltext indexability of their type,
2. touches every document in one transaction (the title is written one
   character longer then restored, so change tracking sees two real
   writes while the final content is unchanged) and stamps the pending
   job marker on the indexable ones,
3. fires one asynchronous extraction request for the indexable ids in a
   second transaction,
4. waits for all extraction work fired so far before the next batch.

A failing batch is rolled back, logged and counted; the run goes on.
Collaborators are injected, see reindex_ports.py.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Sequence
from uuid import UUID

from .reindex_ports import (
    AttributeNotPresentError,
    DocumentQuery,
    DocumentRef,
    FulltextOracle,
    IndexingDispatcher,
    PrincipalResolver,
    PrivilegedSession,
    TransactionControl,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

# Attribute round-tripped to force change detection
CHANGE_TRIGGER_ATTRIBUTE = "title"

# Pending extraction marker, valued with the document's own id
FULLTEXT_JOB_ID_ATTRIBUTE = "fulltext_job_id"

TOUCH_SUFFIX = " "

UNAUTHORIZED = "unauthorized"


# ============================================================================
# Batch Planning
# ============================================================================


@dataclass(frozen=True)
class Batch:
    """A contiguous slice of the enumeration."""

    index: int
    members: Sequence[DocumentRef]

    @property
    def ordinal(self) -> int:
        """1-based number, as accepted by the batch parameter."""
        return self.index + 1

    @property
    def ids(self) -> list[UUID]:
        return [ref.id for ref in self.members]


@dataclass(frozen=True)
class BatchPlan:
    """
    Partition of N documents into batches of batch_size.

    Attributes:
        total: Number of enumerated documents
        batch_size: Documents per batch (the last batch may be smaller)
        num_batches: ceil(total / batch_size)
        selected: 0-based index of the only batch to run, or None for all
    """

    total: int
    batch_size: int
    num_batches: int
    selected: Optional[int] = None

    def bounds(self, index: int) -> tuple[int, int]:
        start = index * self.batch_size
        return start, min(start + self.batch_size, self.total)

    def indexes(self) -> list[int]:
        if self.selected is not None:
            return [self.selected]
        return list(range(self.num_batches))

    def batches(self, refs: Sequence[DocumentRef]) -> Iterator[Batch]:
        """Yield the batches to execute, in ascending order."""
        for index in self.indexes():
            start, end = self.bounds(index)
            yield Batch(index=index, members=refs[start:end])


def normalize_batch_size(batch_size: int, default: int = DEFAULT_BATCH_SIZE) -> int:
    """Non-positive sizes fall back to the default."""
    return batch_size if batch_size > 0 else default


def plan_batches(total: int, batch_size: int, selected_batch: int = 0) -> BatchPlan:
    """
    Plan the batches for a run.

    Args:
        total: Number of enumerated documents
        batch_size: Positive batch size
        selected_batch: 1-based batch to run alone; 0 or out of range runs all

    Returns:
        BatchPlan
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    num_batches = (total + batch_size - 1) // batch_size
    selected = selected_batch - 1 if 1 <= selected_batch <= num_batches else None
    return BatchPlan(
        total=total,
        batch_size=batch_size,
        num_batches=num_batches,
        selected=selected,
    )


def classify(
    members: Sequence[DocumentRef],
    oracle: FulltextOracle,
) -> tuple[list[UUID], list[UUID]]:
    """Split ids into (indexable, non_indexable), keeping enumeration order."""
    indexable: list[UUID] = []
    non_indexable: list[UUID] = []
    for ref in members:
        if oracle.is_fulltext_indexable(ref.type):
            indexable.append(ref.id)
        else:
            non_indexable.append(ref.id)
    return indexable, non_indexable


# ============================================================================
# Run Summary
# ============================================================================


@dataclass
class RunSummary:
    """Counters accumulated over one run."""

    documents_processed: int = 0
    total_documents: int = 0
    batch_errors: int = 0

    def status_line(self) -> str:
        return (
            f"done: {self.documents_processed} total: {self.total_documents}"
            f" batch_errors: {self.batch_errors}"
        )


# ============================================================================
# Engine
# ============================================================================


class FulltextReindexer:
    """
    Batch fulltext reindexing engine.

    One instance serves one run. All collaborators are passed in; the
    engine owns transaction boundaries and error accounting only.
    """

    def __init__(
        self,
        principals: PrincipalResolver,
        documents: DocumentQuery,
        session: PrivilegedSession,
        transactions: TransactionControl,
        fulltext_info: FulltextOracle,
        dispatcher: IndexingDispatcher,
        repository_name: str,
        default_batch_size: int = DEFAULT_BATCH_SIZE,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._principals = principals
        self._documents = documents
        self._session = session
        self._transactions = transactions
        self._fulltext_info = fulltext_info
        self._dispatcher = dispatcher
        self._repository_name = repository_name
        self._default_batch_size = default_batch_size
        self._log = log or logger

    async def reindex(
        self,
        batch_size: int = 0,
        batch: int = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Launch a fulltext reindexing of the repository.

        Args:
            batch_size: Documents per batch, non-positive for the default
            batch: 1-based batch to process alone; 0 processes all
            cancel_event: Set it to stop before the next batch

        Returns:
            "unauthorized", or "done: <n> total: <total> batch_errors: <errs>"
        """
        principal = self._principals.current_principal()
        if not self._principals.is_administrator(principal):
            self._log.warning("Fulltext reindex refused for principal %r", principal)
            return UNAUTHORIZED
        summary = await self.run(batch_size, batch, cancel_event)
        return summary.status_line()

    async def run(
        self,
        batch_size: int = 0,
        batch: int = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """Run the batches without the authorization check."""
        self._log.info("Reindexing starting")
        refs = await self._documents.query_documents()
        plan = plan_batches(
            len(refs),
            normalize_batch_size(batch_size, self._default_batch_size),
            batch,
        )
        self._log.info(
            "Reindexing of %d documents, batch size: %d, number of batches: %d",
            plan.total, plan.batch_size, plan.num_batches,
        )
        if plan.selected is not None:
            self._log.info("Reindexing limited to batch: %d", plan.selected + 1)

        summary = RunSummary(total_documents=plan.total)

        # Batches are independent units of work: step out of the caller's
        # transaction and give them a fresh one when done
        suspended = self._transactions.is_active()
        if suspended:
            await self._transactions.commit_or_rollback()

        try:
            for current in plan.batches(refs):
                if cancel_event is not None and cancel_event.is_set():
                    self._log.warning("Reindexing cancelled before batch %d", current.ordinal)
                    break
                self._log.info(
                    "Reindexing batch %d/%d, first id: %s",
                    current.ordinal, plan.num_batches, current.members[0].id,
                )
                try:
                    await self.run_batch(current)
                except asyncio.CancelledError:
                    self._log.warning("Reindexing interrupted during batch %d", current.ordinal)
                    break
                except Exception:
                    self._log.exception("Error processing batch %d", current.ordinal)
                    summary.batch_errors += 1
                summary.documents_processed += len(current.members)
        finally:
            if suspended:
                await self._transactions.start()

        self._log.info("Reindexing done: %s", summary.status_line())
        return summary

    async def run_batch(self, batch: Batch) -> None:
        """Touch, dispatch, then wait for extraction of one batch."""
        indexable, _ = classify(batch.members, self._fulltext_info)
        indexable_ids = set(indexable)

        await self._in_transaction("touch", self.touch_documents, batch.ids, indexable_ids)
        await self._in_transaction("dispatch", self.dispatch_indexing, indexable_ids)

        # Only after commit: the workers must see the touched documents
        await self._dispatcher.wait_for_completion()

    async def touch_documents(self, ids: Sequence[UUID], indexable: set[UUID]) -> None:
        """
        Mark indexable documents and force a change on every document.

        The change trigger attribute is saved one character longer, then
        saved again with its original value. Types without that attribute
        are skipped.
        """
        session = self._session
        await session.prefetch(ids)

        originals: dict[UUID, Any] = {}
        for doc_id in ids:
            if doc_id in indexable:
                await session.set_attribute(doc_id, FULLTEXT_JOB_ID_ATTRIBUTE, doc_id)
            try:
                value = await session.get_attribute(doc_id, CHANGE_TRIGGER_ATTRIBUTE)
            except AttributeNotPresentError:
                continue
            originals[doc_id] = value
            await session.set_attribute(
                doc_id, CHANGE_TRIGGER_ATTRIBUTE, (value or "") + TOUCH_SUFFIX
            )
        await session.save()

        for doc_id, value in originals.items():
            await session.set_attribute(doc_id, CHANGE_TRIGGER_ATTRIBUTE, value)
        await session.save()

    async def dispatch_indexing(self, indexable: set[UUID]) -> None:
        """Fire one extraction request for the batch, if anything is indexable."""
        if not indexable:
            return
        await self._dispatcher.fire_indexing_request(
            indexable, self._fulltext_info, self._repository_name
        )

    async def _in_transaction(
        self,
        phase: str,
        func: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        started = await self._transactions.start()
        ok = False
        try:
            await func(*args)
            ok = True
        finally:
            if started:
                if not ok:
                    self._transactions.set_rollback_only()
                    self._log.error("Rolling back %s phase", phase)
                await self._transactions.commit_or_rollback()
