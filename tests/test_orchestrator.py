"""
Tests for conversion orchestration.
"""

import asyncio
import pytest
import numpy as np
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakeResource:
    """Input resource that counts access calls."""

    def __init__(self, path, grant=True):
        self.path = Path(path)
        self.grant = grant
        self.begin_calls = 0
        self.end_calls = 0

    @property
    def name(self):
        return self.path.name

    def begin_access(self):
        self.begin_calls += 1
        return self.grant

    def end_access(self):
        self.end_calls += 1


class FakeNormalizer:
    """Normalizer yielding canned images, or raising a job-level error."""

    def __init__(self, images=(), error=None, on_page=None):
        self.images = list(images)
        self.error = error
        self.on_page = on_page
        self.calls = []

    async def normalize(self, path, kind, progress=None, cancel_event=None):
        self.calls.append((path, kind))
        if self.error is not None:
            raise self.error
        return self._iter()

    def _iter(self):
        for index, image in enumerate(self.images):
            if self.on_page is not None:
                self.on_page(index)
            yield image


def page(value):
    return np.full((80, 60, 3), value, dtype=np.uint8)


@pytest.fixture
def page_store():
    from docscan.utils.codec import PageStore

    with tempfile.TemporaryDirectory(prefix="docscan_jobs_") as tmp_dir:
        yield PageStore(Path(tmp_dir))


def stored_files(store):
    return sorted(p.name for p in store.root.iterdir())


class TestConversionJob:
    """Test job state transitions."""

    def test_happy_path(self):
        from docscan.utils.orchestrator import ConversionJob, JobState

        job = ConversionJob(source="a.pdf")
        assert job.state == JobState.IDLE
        job.transition(JobState.CONVERTING)
        job.transition(JobState.SUCCEEDED)
        assert job.succeeded
        assert job.is_terminal

    def test_terminal_states_absorbing(self):
        """Finished jobs refuse further transitions."""
        from docscan.utils.orchestrator import ConversionJob, JobState

        job = ConversionJob(source="a.pdf")
        job.transition(JobState.CONVERTING)
        job.transition(JobState.FAILED)

        for state in JobState:
            with pytest.raises(RuntimeError):
                job.transition(state)

    def test_to_dict(self):
        from docscan.utils.orchestrator import ConversionJob, JobState
        from docscan.utils.errors import NoPagesProduced
        from docscan.utils.io import InputKind

        job = ConversionJob(source="scan.pdf", kind=InputKind.PDF)
        job.transition(JobState.CONVERTING)
        job.progress.drop_page("Skipping page 2: corrupt")
        job.error = NoPagesProduced("nothing left")
        job.transition(JobState.FAILED)

        record = job.to_dict()

        assert record["job_id"] == job.job_id
        assert record["kind"] == "pdf"
        assert record["state"] == "failed"
        assert record["dropped_pages"] == 1
        assert record["errors"] == ["Skipping page 2: corrupt"]
        assert record["error"] == "nothing left"

    def test_cannot_skip_converting(self):
        from docscan.utils.orchestrator import ConversionJob, JobState

        with pytest.raises(RuntimeError):
            ConversionJob(source="a.pdf").transition(JobState.SUCCEEDED)


class TestConversionOrchestrator:
    """Test convert()."""

    def test_all_pages_stored(self, page_store):
        """Every produced page is stored, in order."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.io import InputKind

        orchestrator = ConversionOrchestrator(
            FakeNormalizer([page(10), page(120), page(240)]), page_store
        )
        resource = FakeResource("in.pdf")

        job = asyncio.run(orchestrator.convert(resource, InputKind.PDF))

        assert job.state == JobState.SUCCEEDED
        assert len(job.page_refs) == 3
        values = [int(page_store.load(ref).mean()) for ref in job.page_refs]
        assert values == sorted(values)
        assert resource.end_calls == 1

    def test_partial_success(self, page_store, monkeypatch):
        """k of n storable pages gives a succeeded job with k refs."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import CodecError
        from docscan.utils.io import InputKind

        original_store = page_store.store
        calls = {"n": 0}

        def flaky_store(image):
            calls["n"] += 1
            if calls["n"] == 2:
                raise CodecError("disk full")
            return original_store(image)

        monkeypatch.setattr(page_store, "store", flaky_store)
        orchestrator = ConversionOrchestrator(
            FakeNormalizer([page(1), page(2), page(3)]), page_store
        )

        job = asyncio.run(orchestrator.convert(FakeResource("in.pdf"), InputKind.PDF))

        assert job.state == JobState.SUCCEEDED
        assert len(job.page_refs) == 2
        assert job.dropped_pages == 1
        assert "disk full" in job.errors[0]

    def test_zero_pages_fails(self, page_store):
        """No produced pages fails the job with NoPagesProduced."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import NoPagesProduced
        from docscan.utils.io import InputKind

        orchestrator = ConversionOrchestrator(FakeNormalizer([]), page_store)
        resource = FakeResource("empty.pdf")

        job = asyncio.run(orchestrator.convert(resource, InputKind.PDF))

        assert job.state == JobState.FAILED
        assert isinstance(job.error, NoPagesProduced)
        assert job.page_refs == []
        assert resource.end_calls == 1

    def test_job_level_error(self, page_store):
        """Normalizer errors fail the job and release the resource."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import UnsupportedFormat
        from docscan.utils.io import InputKind

        orchestrator = ConversionOrchestrator(
            FakeNormalizer(error=UnsupportedFormat("nope")), page_store
        )
        resource = FakeResource("in.xyz")

        job = asyncio.run(orchestrator.convert(resource, InputKind.UNSUPPORTED))

        assert job.state == JobState.FAILED
        assert isinstance(job.error, UnsupportedFormat)
        assert resource.end_calls == 1

    def test_access_denied(self, page_store):
        """A refused grant fails the job before normalizing."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import ResourceAccessDenied

        normalizer = FakeNormalizer([page(1)])
        orchestrator = ConversionOrchestrator(normalizer, page_store)
        resource = FakeResource("in.pdf", grant=False)

        job = asyncio.run(orchestrator.convert(resource))

        assert job.state == JobState.FAILED
        assert isinstance(job.error, ResourceAccessDenied)
        assert normalizer.calls == []
        assert resource.end_calls == 0

    def test_kind_detected_when_omitted(self, page_store):
        """The input kind is detected from the file."""
        from docscan.utils.orchestrator import ConversionOrchestrator
        from docscan.utils.io import InputKind

        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "photo.png"
            path.write_bytes(b"\x89PNG\r\n\x1a\n")
            normalizer = FakeNormalizer([page(1)])
            orchestrator = ConversionOrchestrator(normalizer, page_store)

            job = asyncio.run(orchestrator.convert(FakeResource(path)))

        assert job.kind == InputKind.IMAGE
        assert normalizer.calls[0][1] == InputKind.IMAGE

    def test_cancel_between_pages(self, page_store):
        """Cancelling mid-job fails it and releases stored pages."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import JobCancelled
        from docscan.utils.io import InputKind

        async def run():
            cancel = asyncio.Event()

            def on_page(index):
                if index == 2:
                    cancel.set()

            normalizer = FakeNormalizer([page(1), page(2), page(3)], on_page=on_page)
            orchestrator = ConversionOrchestrator(normalizer, page_store)
            resource = FakeResource("in.pdf")
            job = await orchestrator.convert(resource, InputKind.PDF, cancel_event=cancel)
            return job, resource

        job, resource = asyncio.run(run())

        assert job.state == JobState.FAILED
        assert isinstance(job.error, JobCancelled)
        assert job.page_refs == []
        assert stored_files(page_store) == []
        assert resource.end_calls == 1

    def test_cancel_before_start(self, page_store):
        """A pre-set cancel event stores nothing."""
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import JobCancelled
        from docscan.utils.io import InputKind

        async def run():
            cancel = asyncio.Event()
            cancel.set()
            orchestrator = ConversionOrchestrator(FakeNormalizer([page(1)]), page_store)
            return await orchestrator.convert(FakeResource("in.pdf"), InputKind.PDF, cancel_event=cancel)

        job = asyncio.run(run())

        assert job.state == JobState.FAILED
        assert isinstance(job.error, JobCancelled)
        assert stored_files(page_store) == []

    def test_concurrent_jobs(self, page_store):
        """Independent jobs can run together."""
        from docscan.utils.orchestrator import ConversionOrchestrator
        from docscan.utils.io import InputKind

        async def run():
            a = ConversionOrchestrator(FakeNormalizer([page(1), page(2)]), page_store)
            b = ConversionOrchestrator(FakeNormalizer([page(3)]), page_store)
            return await asyncio.gather(
                a.convert(FakeResource("a.pdf"), InputKind.PDF),
                b.convert(FakeResource("b.pdf"), InputKind.PDF),
            )

        job_a, job_b = asyncio.run(run())

        assert job_a.succeeded and job_b.succeeded
        assert len(job_a.page_refs) == 2
        assert len(job_b.page_refs) == 1
        assert not set(job_a.page_refs) & set(job_b.page_refs)

    def test_slow_pages_do_not_block_other_jobs(self, page_store):
        """Page rendering runs off the event loop, so jobs overlap."""
        import time
        from docscan.utils.normalizer import FormatNormalizer
        from docscan.utils.orchestrator import ConversionOrchestrator
        from docscan.utils.io import InputKind

        class SlowRasterizer:
            dpi = 150

            def page_count(self, source):
                return 2

            def render_page(self, source, index):
                time.sleep(0.5)
                return page(50 + index)

        async def run():
            jobs = [
                ConversionOrchestrator(
                    FormatNormalizer(rasterizer=SlowRasterizer()), page_store
                ).convert(FakeResource(name), InputKind.PDF)
                for name in ("a.pdf", "b.pdf")
            ]
            return await asyncio.gather(*jobs)

        start = time.monotonic()
        job_a, job_b = asyncio.run(run())
        elapsed = time.monotonic() - start

        assert job_a.succeeded and job_b.succeeded
        assert len(job_a.page_refs) == len(job_b.page_refs) == 2
        # Back to back would take 2s
        assert elapsed < 1.6

    def test_three_page_pdf_with_failing_page(self, page_store):
        """A 3-page PDF whose second page fails gives 2 refs and success."""
        from docscan.utils.normalizer import FormatNormalizer
        from docscan.utils.orchestrator import ConversionOrchestrator, JobState
        from docscan.utils.errors import RenderFailure
        from docscan.utils.io import InputKind

        class Rasterizer:
            dpi = 150

            def page_count(self, source):
                return 3

            def render_page(self, source, index):
                if index == 1:
                    raise RenderFailure("corrupt page")
                return page(50 * (index + 1))

        orchestrator = ConversionOrchestrator(FormatNormalizer(rasterizer=Rasterizer()), page_store)

        job = asyncio.run(orchestrator.convert(FakeResource("in.pdf"), InputKind.PDF))

        assert job.state == JobState.SUCCEEDED
        assert len(job.page_refs) == 2
        assert job.dropped_pages == 1
        means = [int(page_store.load(ref).mean()) for ref in job.page_refs]
        assert means[0] < means[1]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
