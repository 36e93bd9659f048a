"""
Retained Frame Sink Tests
=========================
"""

import zipfile

from slide_capture.capture import FrameSink, MemorySink, ZipArchiveSink, frame_entry_name
from slide_capture.models.session import RetainedFrame


def retained(index, timestamp=1704110400.0, media_type="image/webp", image=None):
    return RetainedFrame(
        index=index,
        image=image if image is not None else bytes([index]) * 8,
        timestamp=timestamp,
        width=4,
        height=3,
        media_type=media_type,
    )


class TestEntryName:
    """Tests for archive entry naming."""

    def test_iso_timestamp_name(self):
        assert (
            frame_entry_name(retained(1))
            == "captured_frames/frame_2024-01-01T12-00-00-000Z.webp"
        )

    def test_milliseconds_kept(self):
        name = frame_entry_name(retained(1, timestamp=1704110400.25))
        assert name.endswith("T12-00-00-250Z.webp")

    def test_extension_follows_media_type(self):
        assert frame_entry_name(retained(1, media_type="image/jpeg")).endswith(".jpg")
        assert frame_entry_name(retained(1, media_type="image/png"), "slides").startswith("slides/")


class TestMemorySink:
    """Tests for MemorySink."""

    def test_records_batches(self):
        sink = MemorySink()
        assert sink.last_batch == ()

        assert sink.package([retained(1), retained(2)]) is None
        sink.package([])

        assert len(sink.batches) == 2
        assert [f.index for f in sink.batches[0]] == [1, 2]
        assert sink.last_batch == ()

    def test_is_frame_sink(self):
        assert isinstance(MemorySink(), FrameSink)


class TestZipArchiveSink:
    """Tests for ZipArchiveSink."""

    def test_writes_frames_in_order(self, tmp_path):
        sink = ZipArchiveSink(str(tmp_path / "out"))
        frames = [retained(1, 1704110400.0), retained(2, 1704110401.5)]

        path = sink.package(frames)

        assert path.exists()
        assert path.parent == tmp_path / "out"
        assert path.name.startswith("captured_frames_")
        with zipfile.ZipFile(path) as archive:
            names = archive.namelist()
            assert names == [
                "captured_frames/frame_2024-01-01T12-00-00-000Z.webp",
                "captured_frames/frame_2024-01-01T12-00-01-500Z.webp",
            ]
            assert archive.read(names[1]) == frames[1].image
        assert sink.archives == [path]

    def test_colliding_names_get_index_suffix(self, tmp_path):
        sink = ZipArchiveSink(str(tmp_path))
        path = sink.package([retained(1), retained(2)])

        with zipfile.ZipFile(path) as archive:
            assert archive.namelist() == [
                "captured_frames/frame_2024-01-01T12-00-00-000Z.webp",
                "captured_frames/frame_2024-01-01T12-00-00-000Z_2.webp",
            ]

    def test_empty_batch_writes_nothing(self, tmp_path):
        sink = ZipArchiveSink(str(tmp_path / "never"))
        assert sink.package([]) is None
        assert not (tmp_path / "never").exists()
