import io

import pytest

from mkcbt.domain.exceptions import (
    ArchiveWriteException,
    ConversionFailedException,
    EncoderSpawnException,
    EntryNameTooLongException,
    PipelineStateException,
)
from mkcbt.domain.jobs import JobKind, JobStatus, entry_name, index_width
from mkcbt.pipeline.job_pipeline import JobPipeline, build_archive, default_ceiling
from mkcbt.services.archive_writer import TarArchiveWriter

from .helpers import FakeEncoder, split_archive


def _pipeline(tmp_path, total, encoder, ceiling=2, target_extension=".avif"):
    sink = io.BytesIO()
    pipeline = JobPipeline(
        TarArchiveWriter(sink),
        total=total,
        ceiling=ceiling,
        encoder=encoder,
        target_extension=target_extension,
        work_parent=tmp_path,
    )
    return pipeline, sink


def test_index_width_and_names():
    assert index_width(3) == 1
    assert index_width(9) == 1
    assert index_width(12) == 2
    assert index_width(100) == 3
    assert entry_name(1, 2, ".avif") == "01.avif"
    assert entry_name(12, 2, ".avif") == "12.avif"


def test_three_inputs_are_named_in_order(tmp_path, make_images, fake_encoder):
    inputs = make_images("a.png", "b.png", "c.png")
    pipeline, sink = _pipeline(tmp_path, 3, fake_encoder)

    with pipeline:
        for path in inputs:
            pipeline.submit(path)
        summary = pipeline.finish()

    entries, trailer = split_archive(sink.getvalue())
    assert [name for name, *_ in entries] == ["1.avif", "2.avif", "3.avif"]
    assert [content for _, _, content, _ in entries] == [p.read_bytes() for p in inputs]
    assert trailer == bytes(1024)
    assert summary.entries == 3
    assert summary.converted == 3
    assert summary.copied == 0


def test_twelve_inputs_use_two_digit_names(tmp_path, make_images):
    inputs = make_images(*[f"{i:02d}.avif" for i in range(1, 13)], size=10)
    pipeline, sink = _pipeline(tmp_path, 12, FakeEncoder(), ceiling=4)

    with pipeline:
        for path in inputs:
            pipeline.submit(path)

    entries, _ = split_archive(sink.getvalue())
    assert [name for name, *_ in entries] == [f"{i:02d}.avif" for i in range(1, 13)]


def test_order_is_independent_of_conversion_latency(tmp_path, make_images):
    names = ["p1.png", "p2.png", "p3.png", "p4.png", "p5.png"]
    inputs = make_images(*names)
    # Earlier inputs finish last.
    encoder = FakeEncoder(delays={"p1.png": 0.6, "p2.png": 0.4, "p3.png": 0.2})
    pipeline, sink = _pipeline(tmp_path, len(inputs), encoder, ceiling=3)

    with pipeline:
        for path in inputs:
            pipeline.submit(path)

    entries, _ = split_archive(sink.getvalue())
    assert [name for name, *_ in entries] == ["1.avif", "2.avif", "3.avif", "4.avif", "5.avif"]
    assert [content for _, _, content, _ in entries] == [p.read_bytes() for p in inputs]


def test_running_jobs_never_exceed_ceiling(tmp_path, make_images):
    inputs = make_images(*[f"{i}.png" for i in range(8)])
    encoder = FakeEncoder(delays={p.name: 0.2 for p in inputs})
    pipeline, _ = _pipeline(tmp_path, len(inputs), encoder, ceiling=3)

    observed = []
    with pipeline:
        for path in inputs:
            pipeline.submit(path)
            observed.append(pipeline.in_flight)
            assert pipeline.running <= 3

    assert max(observed) == 3
    assert encoder.max_alive <= 3
    assert len(encoder.processes) == 8


def test_copy_jobs_skip_the_encoder(tmp_path, make_images, fake_encoder):
    inputs = make_images("a.AVIF", "b.png")
    pipeline, sink = _pipeline(tmp_path, 2, fake_encoder)

    with pipeline:
        copy_job = pipeline.submit(inputs[0])
        convert_job = pipeline.submit(inputs[1])
        assert copy_job.kind is JobKind.COPY
        assert copy_job.process is None
        assert convert_job.kind is JobKind.CONVERT
        summary = pipeline.finish()

    assert copy_job.status is JobStatus.FLUSHED
    assert [p for p, _ in fake_encoder.spawned] == [inputs[1]]
    entries, _ = split_archive(sink.getvalue())
    assert entries[0][0] == "1.avif"
    assert entries[0][2] == inputs[0].read_bytes()
    assert inputs[0].exists()
    assert summary.copied == 1 and summary.converted == 1


def test_copy_only_mode_keeps_lowercase_extensions(tmp_path, make_images):
    inputs = make_images("a.JPG", "b.png", "c.webp")
    pipeline, sink = _pipeline(tmp_path, 3, None, target_extension=None)

    assert pipeline.work_dir is None
    with pipeline:
        for path in inputs:
            pipeline.submit(path)

    entries, _ = split_archive(sink.getvalue())
    assert [name for name, *_ in entries] == ["1.jpg", "2.png", "3.webp"]
    assert [content for _, _, content, _ in entries] == [p.read_bytes() for p in inputs]


def test_intermediate_files_live_in_work_dir_and_are_removed(tmp_path, make_images, fake_encoder):
    inputs = make_images("a.png", "b.png")
    pipeline, _ = _pipeline(tmp_path, 2, fake_encoder)
    work_path = pipeline.work_dir.path

    with pipeline:
        for path in inputs:
            pipeline.submit(path)
        assert all(out.parent == work_path for _, out in fake_encoder.spawned)
        assert fake_encoder.spawned[0][1].name.startswith("1-")

    assert not work_path.exists()
    assert all(not out.exists() for _, out in fake_encoder.spawned)


def test_conversion_failure_aborts_before_the_failed_entry(tmp_path, make_images):
    inputs = make_images("a.png", "b.png", "c.png", "d.png")
    encoder = FakeEncoder(failures={"b.png"}, delays={"c.png": 0.5, "d.png": 5})
    pipeline, sink = _pipeline(tmp_path, 4, encoder, ceiling=4)
    work_path = pipeline.work_dir.path

    with pytest.raises(ConversionFailedException) as excinfo:
        with pipeline:
            for path in inputs:
                pipeline.submit(path)

    assert excinfo.value.path == inputs[1]
    assert excinfo.value.returncode == 3
    entries, trailer = split_archive(sink.getvalue())
    assert [name for name, *_ in entries] == ["1.avif"]
    assert trailer == b""
    assert not work_path.exists()
    assert all(p.poll() is not None for p in encoder.processes)


def test_failure_during_backpressure_flush(tmp_path, make_images):
    inputs = make_images("a.png", "b.png", "c.png")
    encoder = FakeEncoder(failures={"a.png"})
    pipeline, sink = _pipeline(tmp_path, 3, encoder, ceiling=1)
    work_path = pipeline.work_dir.path

    with pytest.raises(ConversionFailedException):
        with pipeline:
            for path in inputs:
                pipeline.submit(path)

    assert len(encoder.processes) == 1
    assert sink.getvalue() == b""
    assert not work_path.exists()


class _SecondSpawnFails(FakeEncoder):
    def spawn(self, input_path, output_path):
        if self.processes:
            raise EncoderSpawnException(input_path, "no such file or directory")
        return super().spawn(input_path, output_path)


def test_spawn_failure_terminates_running_encoders(tmp_path, make_images):
    inputs = make_images("a.png", "b.png")
    encoder = _SecondSpawnFails(delays={"a.png": 5})
    pipeline, sink = _pipeline(tmp_path, 2, encoder, ceiling=2)
    work_path = pipeline.work_dir.path

    with pytest.raises(EncoderSpawnException) as excinfo:
        with pipeline:
            for path in inputs:
                pipeline.submit(path)

    assert excinfo.value.path == inputs[1]
    assert len(encoder.processes) == 1
    assert all(p.poll() is not None for p in encoder.processes)
    assert not work_path.exists()
    assert sink.getvalue() == b""


class _BrokenSink(io.BytesIO):
    def write(self, data):
        raise OSError(28, "No space left on device")


def test_sink_failure_while_flushing_aborts_the_pipeline(tmp_path, make_images):
    inputs = make_images("a.png", "b.png")
    encoder = FakeEncoder(delays={"b.png": 5})
    pipeline = JobPipeline(
        TarArchiveWriter(_BrokenSink()),
        total=2,
        ceiling=2,
        encoder=encoder,
        work_parent=tmp_path,
    )
    work_path = pipeline.work_dir.path

    with pytest.raises(ArchiveWriteException, match="No space left"):
        with pipeline:
            for path in inputs:
                pipeline.submit(path)

    assert len(encoder.processes) == 2
    assert all(p.poll() is not None for p in encoder.processes)
    assert not work_path.exists()
    assert pipeline.archive.closed


def test_convert_job_wait_reports_exit_status(tmp_path, make_images):
    inputs = make_images("a.png", "b.png")
    encoder = FakeEncoder(failures={"b.png"})
    pipeline, _ = _pipeline(tmp_path, 2, encoder, ceiling=2)

    with pipeline:
        jobs = [pipeline.submit(path) for path in inputs]
        assert [job.wait() for job in jobs] == [0, 3]
        assert all(job.status is JobStatus.COMPLETED for job in jobs)
        pipeline.abort()


def test_submitting_more_than_total_is_rejected(tmp_path, make_images, fake_encoder):
    inputs = make_images("a.avif", "b.avif")
    pipeline, _ = _pipeline(tmp_path, 1, fake_encoder)

    with pytest.raises(PipelineStateException):
        with pipeline:
            pipeline.submit(inputs[0])
            pipeline.submit(inputs[1])


def test_submit_after_finish_is_rejected(tmp_path, make_images, fake_encoder):
    inputs = make_images("a.avif")
    pipeline, _ = _pipeline(tmp_path, 1, fake_encoder)
    pipeline.submit(inputs[0])
    pipeline.finish()

    with pytest.raises(PipelineStateException):
        pipeline.submit(inputs[0])
    with pytest.raises(PipelineStateException):
        pipeline.finish()


def test_over_length_name_is_rejected_before_spawning(tmp_path, make_images, fake_encoder):
    long_ext = "." + "x" * 100
    inputs = make_images("a.png")
    pipeline, _ = _pipeline(tmp_path, 1, fake_encoder, target_extension=long_ext)

    with pytest.raises(EntryNameTooLongException):
        with pipeline:
            pipeline.submit(inputs[0])
    assert fake_encoder.spawned == []


def test_invalid_construction(tmp_path, fake_encoder):
    with pytest.raises(PipelineStateException):
        _pipeline(tmp_path, 0, fake_encoder)
    with pytest.raises(PipelineStateException):
        _pipeline(tmp_path, 1, fake_encoder, ceiling=0)


def test_default_ceiling_is_positive():
    assert default_ceiling() >= 1


def test_build_archive_from_directory(tmp_path, make_images):
    make_images("b.png", "a.png", "c.avif")
    output = tmp_path / "book.cbt"
    encoder = FakeEncoder()

    summary = build_archive(
        str(output), [tmp_path / "images"], convert=True, ceiling=2, encoder=encoder
    )

    entries, trailer = split_archive(output.read_bytes())
    assert [name for name, *_ in entries] == ["1.avif", "2.avif", "3.avif"]
    assert entries[0][2] == (tmp_path / "images" / "a.png").read_bytes()
    assert trailer == bytes(1024)
    assert summary.converted == 2 and summary.copied == 1


def test_build_archive_stamps_mtime(tmp_path, make_images):
    inputs = make_images("a.png")
    output = tmp_path / "book.cbt"

    build_archive(str(output), inputs, stamp_mtime=True)

    entries, _ = split_archive(output.read_bytes())
    assert int(entries[0][1][136:147], 8) > 0
