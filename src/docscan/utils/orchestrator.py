"""
Conversion orchestration.

Runs one import request end to end: acquire the input, normalize it into
page images, and store each page. A job produces an ordered list of page
references or fails as a whole; it never leaves a partial artifact behind.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .codec import PageRef, PageStore
from .errors import CodecError, JobCancelled, NoPagesProduced
from .io import ConversionProgress, InputKind, InputResource, detect_input_kind, scoped_access
from .normalizer import FormatNormalizer

logger = logging.getLogger(__name__)

_DONE = object()


# ============================================================================
# Data Classes
# ============================================================================

class JobState(str, Enum):
    IDLE = "idle"
    CONVERTING = "converting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS = {
    JobState.IDLE: (JobState.CONVERTING,),
    JobState.CONVERTING: (JobState.SUCCEEDED, JobState.FAILED),
    JobState.SUCCEEDED: (),
    JobState.FAILED: (),
}


@dataclass
class ConversionJob:
    """State of one conversion request."""
    source: str
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    kind: Optional[InputKind] = None
    state: JobState = JobState.IDLE
    page_refs: List[PageRef] = field(default_factory=list)
    error: Optional[BaseException] = None
    progress: ConversionProgress = field(default_factory=ConversionProgress)

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    @property
    def dropped_pages(self) -> int:
        return self.progress.dropped_pages

    @property
    def errors(self) -> List[str]:
        return self.progress.errors

    def transition(self, new_state: JobState):
        """Move to new_state; succeeded and failed are final."""
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Job {self.job_id}: invalid transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"Job {self.job_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def to_dict(self):
        return {
            "job_id": self.job_id,
            "source": self.source,
            "kind": self.kind.value if self.kind else None,
            "state": self.state.value,
            "page_refs": list(self.page_refs),
            "dropped_pages": self.dropped_pages,
            "errors": list(self.errors),
            "error": str(self.error) if self.error else None,
        }


# ============================================================================
# Orchestrator
# ============================================================================

class ConversionOrchestrator:
    """
    Drives conversion jobs.

    Collaborators are passed in; the orchestrator keeps no state between
    jobs, so several convert() calls may run concurrently.
    """

    def __init__(self, normalizer: FormatNormalizer, page_store: PageStore):
        self.normalizer = normalizer
        self.page_store = page_store

    async def convert(
        self,
        resource: InputResource,
        kind: Optional[InputKind] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ConversionJob:
        """
        Convert an input resource into stored pages.

        Args:
            resource: Input to read; access is held for the whole job
            kind: Input kind, detected from the file when omitted
            cancel_event: When set, the job stops at the next check

        Returns:
            The finished job, either succeeded with at least one page ref
            or failed with its error
        """
        job = ConversionJob(source=resource.name, kind=kind)
        job.transition(JobState.CONVERTING)
        start_time = time.time()

        try:
            with scoped_access(resource) as path:
                if job.kind is None:
                    job.kind = detect_input_kind(path)
                logger.info(f"Converting {job.source} ({job.kind.value})")

                pages = await self.normalizer.normalize(
                    path, job.kind, job.progress, cancel_event
                )
                self._check_cancelled(job, cancel_event)

                page_number = 0
                while True:
                    # Rendering and encoding block; keep them off the event loop
                    image = await asyncio.to_thread(next, pages, _DONE)
                    if image is _DONE:
                        break
                    page_number += 1
                    self._check_cancelled(job, cancel_event)
                    try:
                        ref = await self._store(image)
                    except CodecError as e:
                        job.progress.drop_page(f"Page {page_number} could not be stored: {e}")
                        continue
                    job.page_refs.append(ref)
                    job.progress.page_stored()

            if not job.page_refs:
                raise NoPagesProduced(f"No pages could be produced from {job.source}")

        except asyncio.CancelledError:
            self._fail(job, JobCancelled(f"Conversion of {job.source} was cancelled"))
            raise
        except Exception as e:
            self._fail(job, e)
            return job

        job.transition(JobState.SUCCEEDED)
        elapsed = time.time() - start_time
        logger.info(
            f"Converted {job.source}: {len(job.page_refs)} page(s) stored, "
            f"{job.dropped_pages} dropped in {elapsed:.2f}s"
        )
        return job

    async def _store(self, image) -> PageRef:
        task = asyncio.ensure_future(asyncio.to_thread(self.page_store.store, image))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The write still lands in its thread; release it once it does
            task.add_done_callback(self._discard_stored)
            raise

    def _discard_stored(self, task: asyncio.Future):
        if not task.cancelled() and task.exception() is None:
            self.page_store.delete(task.result())

    @staticmethod
    def _check_cancelled(job: ConversionJob, cancel_event: Optional[asyncio.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelled(f"Conversion of {job.source} was cancelled")

    def _fail(self, job: ConversionJob, error: BaseException):
        # A failed job owns no pages
        for ref in job.page_refs:
            self.page_store.delete(ref)
        job.page_refs = []
        job.error = error
        job.transition(JobState.FAILED)
        logger.error(f"Conversion of {job.source} failed: {type(error).__name__}: {error}")
