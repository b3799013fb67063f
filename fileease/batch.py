"""
batch.py - Sequential batch execution with progress events.

Items run one at a time in the given order. A failing item is marked
failed and the batch moves on. The merged-PDF kind is the exception:
all inputs go into one document, and any failure fails every item.

Usage:
    orchestrator = BatchOrchestrator()
    async for event in orchestrator.stream(items, directive):
        show(event.state.overall_progress, event.item)
"""

import copy
import dataclasses
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from .engine import PDF_MIME_TYPE, ConversionEngine, output_name
from .errors import BatchInProgressError
from .models import (
    BatchState,
    ConversionDirective,
    ConversionKind,
    ItemStatus,
    WorkItem,
)

logger = logging.getLogger(__name__)

MERGE_FAILED_MESSAGE = "Failed to combine PDF"
COMBINED_ID = "combined-pdf"
COMBINED_NAME = "combined.pdf"
PROCESSING_PROGRESS = 50


class EventKind(str, Enum):
    BATCH_STARTED = "batch-started"
    ITEM_STARTED = "item-started"
    ITEM_FINISHED = "item-finished"
    BATCH_FINISHED = "batch-finished"


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot emitted after every state change of a run."""
    kind: EventKind
    item: Optional[WorkItem]
    state: BatchState


class CancellationToken:
    """Checked between items; the item in flight always finishes."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def _clear_output(item: WorkItem):
    item.output_buffer = None
    item.output_name = None
    item.output_type = None
    item.output_size = None


class BatchRun:
    """
    One execution of a batch as a lazy, single-use async iterator.

    After iteration ends, items holds the final list (a single combined
    item for merged runs). Use it as an async context manager when the
    loop may exit early, so the orchestrator returns to idle:

        async with orchestrator.stream(items, directive) as batch:
            async for event in batch:
                ...
    """

    def __init__(
        self,
        orchestrator: "BatchOrchestrator",
        items: Sequence[WorkItem],
        directive: ConversionDirective,
        cancel: Optional[CancellationToken] = None
    ):
        self.items: List[WorkItem] = list(items)
        self.directive = directive
        self._orchestrator = orchestrator
        self._cancel = cancel
        self._events = self._generate()
        self._iterated = False

    def __aiter__(self) -> "BatchRun":
        if self._iterated:
            raise RuntimeError("A batch run can only be iterated once")
        self._iterated = True
        return self

    async def __anext__(self) -> ProgressEvent:
        return await self._events.__anext__()

    async def aclose(self):
        await self._events.aclose()

    async def __aenter__(self) -> "BatchRun":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @property
    def _state(self) -> BatchState:
        return self._orchestrator._state

    def _event(self, kind: EventKind, item: Optional[WorkItem] = None) -> ProgressEvent:
        snapshot = copy.copy(item) if item is not None else None
        return ProgressEvent(kind=kind, item=snapshot, state=dataclasses.replace(self._state))

    def _cancel_requested(self) -> bool:
        return self._cancel is not None and self._cancel.cancelled

    def _set_progress(self, done: int):
        total = self._state.total_items
        self._state.current_index = done
        self._state.overall_progress = 100.0 * done / total if total else 0.0

    async def _generate(self) -> AsyncIterator[ProgressEvent]:
        orchestrator = self._orchestrator
        if orchestrator._state.running:
            raise BatchInProgressError("A batch is already running")

        orchestrator._state = BatchState(running=True, total_items=len(self.items))
        orchestrator.engine.initialize()
        start = time.time()
        completed = False

        logger.info(f"Batch started: {len(self.items)} item(s), {self.directive.kind.value}")
        try:
            yield self._event(EventKind.BATCH_STARTED)

            if not self.items:
                completed = True
            elif self.directive.kind is ConversionKind.RASTER_TO_PDF_MERGED:
                async for event in self._run_merged():
                    yield event
                completed = self.items[0].status is ItemStatus.COMPLETED
            else:
                async for event in self._run_items():
                    yield event
                completed = not any(item.status is ItemStatus.CANCELLED for item in self.items)
        finally:
            self._state.running = False

        if completed and self.items:
            self._set_progress(self._state.total_items)

        failed = sum(1 for item in self.items if item.status is ItemStatus.FAILED)
        logger.info(
            f"Batch finished in {time.time() - start:.1f}s: "
            f"{len(self.items) - failed}/{len(self.items)} ok"
        )
        yield self._event(EventKind.BATCH_FINISHED)

    async def _run_items(self) -> AsyncIterator[ProgressEvent]:
        engine = self._orchestrator.engine
        total = len(self.items)

        for index, item in enumerate(self.items):
            if self._cancel_requested():
                for event in self._cancel_remaining(self.items[index:]):
                    yield event
                return

            self._set_progress(index)
            item.status = ItemStatus.PROCESSING
            item.progress = PROCESSING_PROGRESS
            yield self._event(EventKind.ITEM_STARTED, item)

            try:
                artifact = await engine.execute(item, self.directive)
            except Exception as e:
                logger.error(f"[{index + 1}/{total}] {item.input_name} failed: {e}")
                item.status = ItemStatus.FAILED
                item.error_message = str(e) or type(e).__name__
                _clear_output(item)
            else:
                item.output_buffer = artifact.data
                item.output_name = output_name(item.input_name, self.directive, artifact)
                item.output_type = artifact.mime_type
                item.output_size = artifact.size
                item.status = ItemStatus.COMPLETED
                item.progress = 100
                logger.info(
                    f"[{index + 1}/{total}] {item.input_name} -> {item.output_name} "
                    f"({item.input_size:,} -> {item.output_size:,} bytes)"
                )

            self._set_progress(index + 1)
            yield self._event(EventKind.ITEM_FINISHED, item)

    def _cancel_remaining(self, items: Sequence[WorkItem]):
        logger.info(f"Batch cancelled, {len(items)} item(s) not started")
        for item in items:
            item.status = ItemStatus.CANCELLED
            item.progress = 0
            yield self._event(EventKind.ITEM_FINISHED, item)

    async def _run_merged(self) -> AsyncIterator[ProgressEvent]:
        if self._cancel_requested():
            for event in self._cancel_remaining(self.items):
                yield event
            return

        for item in self.items:
            item.status = ItemStatus.PROCESSING
            item.progress = PROCESSING_PROGRESS
            yield self._event(EventKind.ITEM_STARTED, item)

        images = [(item.input_name, item.input_buffer, item.input_type) for item in self.items]
        try:
            artifact = await self._orchestrator.engine.merge_images_to_pdf(
                images, self.directive.layout
            )
        except Exception as e:
            logger.error(f"Combining {len(images)} image(s) failed: {e}")
            for item in self.items:
                item.status = ItemStatus.FAILED
                item.progress = 0
                item.error_message = MERGE_FAILED_MESSAGE
                _clear_output(item)
                yield self._event(EventKind.ITEM_FINISHED, item)
            return

        combined = WorkItem(
            id=COMBINED_ID,
            input_buffer=b"",
            input_name=COMBINED_NAME,
            input_type=PDF_MIME_TYPE,
            input_size=sum(item.input_size for item in self.items),
            status=ItemStatus.COMPLETED,
            progress=100,
            output_buffer=artifact.data,
            output_name=COMBINED_NAME,
            output_type=artifact.mime_type,
            output_size=artifact.size,
        )
        logger.info(f"Combined {len(images)} image(s) into {COMBINED_NAME} ({artifact.size:,} bytes)")
        self.items = [combined]
        self._set_progress(self._state.total_items)
        yield self._event(EventKind.ITEM_FINISHED, combined)


class BatchOrchestrator:
    """
    Owns the batch state and runs one batch at a time.

    Args:
        engine: Conversion engine, a new one by default
    """

    def __init__(self, engine: Optional[ConversionEngine] = None):
        self.engine = engine or ConversionEngine()
        self._state = BatchState()

    def initialize(self):
        self.engine.initialize()

    @property
    def state(self) -> BatchState:
        return dataclasses.replace(self._state)

    @property
    def running(self) -> bool:
        return self._state.running

    def stream(
        self,
        items: Sequence[WorkItem],
        directive: ConversionDirective,
        cancel: Optional[CancellationToken] = None
    ) -> BatchRun:
        """
        Create a run. Nothing executes until it is iterated.

        Consumers that may stop iterating early must call aclose() or use
        the run as an async context manager; otherwise the orchestrator
        stays busy until the run is garbage collected.

        Raises:
            BatchInProgressError: another run has not finished
            ValueError: an item is not pending (already processed)
        """
        if self._state.running:
            raise BatchInProgressError("A batch is already running")
        stale = [item.input_name for item in items if item.status is not ItemStatus.PENDING]
        if stale:
            raise ValueError(f"Items already processed: {', '.join(stale)}")
        return BatchRun(self, items, directive, cancel)

    async def run(
        self,
        items: Sequence[WorkItem],
        directive: ConversionDirective,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[List[WorkItem], BatchState]:
        """Execute a batch to the end and return (items, final state)."""
        batch = self.stream(items, directive, cancel)
        async for _ in batch:
            pass
        return batch.items, self.state

    async def generate_previews(self, items: Sequence[WorkItem]):
        """Attach preview data URLs; items without one keep None."""
        for item in items:
            item.preview = await self.engine.thumbnail(item.input_buffer, item.input_type)

    def clear(self, items: Sequence[WorkItem]) -> List[WorkItem]:
        """Release every buffer and return to an idle, empty state."""
        if self._state.running:
            raise BatchInProgressError("Cannot clear while a batch is running")
        for item in items:
            item.release()
        self._state = BatchState()
        logger.debug(f"Cleared {len(items)} item(s)")
        return []
