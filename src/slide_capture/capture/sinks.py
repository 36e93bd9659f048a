"""
Retained Frame Sinks
====================

Collaborators that receive the retained frames once a session stops.

Sinks:
    - MemorySink: keeps every packaged batch in memory
    - ZipArchiveSink: writes a zip archive with a captured_frames/ folder,
      one entry per frame named frame_<ISO timestamp>.<ext>

Sinks run off the event loop and never see a session, only the ordered,
immutable tuple of retained frames.
"""

import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from slide_capture.models.session import RetainedFrame


logger = logging.getLogger(__name__)


_EXTENSIONS = {
    "image/webp": "webp",
    "image/png": "png",
    "image/jpeg": "jpg",
}


@runtime_checkable
class FrameSink(Protocol):
    """Receives retained frames when a session stops."""

    def package(self, frames: Sequence[RetainedFrame]) -> Optional[Path]:
        """
        Package retained frames.

        Args:
            frames: Retained frames in capture order

        Returns:
            Path of the written artifact, if any
        """
        ...


def frame_entry_name(frame: RetainedFrame, folder: str = "captured_frames") -> str:
    """
    Archive entry name for a retained frame.

    The ISO 8601 UTC timestamp has ':' and '.' replaced by '-' so the name
    is valid on every filesystem.
    """
    moment = datetime.fromtimestamp(frame.timestamp, tz=timezone.utc)
    stamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    extension = _EXTENSIONS.get(frame.media_type, "bin")
    return f"{folder}/frame_{stamp}.{extension}"


class MemorySink:
    """Keeps packaged batches in memory."""

    def __init__(self) -> None:
        self.batches: List[Tuple[RetainedFrame, ...]] = []

    @property
    def last_batch(self) -> Tuple[RetainedFrame, ...]:
        return self.batches[-1] if self.batches else ()

    def package(self, frames: Sequence[RetainedFrame]) -> Optional[Path]:
        self.batches.append(tuple(frames))
        logger.info(f"MemorySink received {len(frames)} frame(s)")
        return None


class ZipArchiveSink:
    """
    Writes retained frames to a zip archive.

    Attributes:
        output_dir: Directory archives are written to
        prefix: Archive file name prefix and in-archive folder name
    """

    def __init__(self, output_dir: str = "./captures", prefix: str = "captured_frames") -> None:
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.archives: List[Path] = []

    def package(self, frames: Sequence[RetainedFrame]) -> Optional[Path]:
        if not frames:
            logger.info("No frames to package")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)

        created = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        path = self.output_dir / f"{self.prefix}_{created}.zip"

        used = set()
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED) as archive:
            for frame in frames:
                name = frame_entry_name(frame, self.prefix)
                if name in used:
                    stem, _, extension = name.rpartition(".")
                    name = f"{stem}_{frame.index}.{extension}"
                used.add(name)
                archive.writestr(name, frame.image)

        self.archives.append(path)
        logger.info(f"Packaged {len(frames)} frame(s) into {path}")
        return path
