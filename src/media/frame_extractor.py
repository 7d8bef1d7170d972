# src/media/frame_extractor.py - v1
"""Video to still-frame reduction for visual analysis.

Frames are sampled at evenly spaced positions starting at the first frame
(position i * total / count) and returned as JPEG ImageAssets in playback
order.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from factlens.core.errors import AgentError, ErrorKind
from factlens.core.models import ImageAsset, VideoAsset

logger = logging.getLogger(__name__)


class FrameExtractionError(AgentError):
    """Video could not be opened, has no bounded length or yielded no frames."""

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.INVALID_RESPONSE, agent="frame_extractor")


def frame_positions(total_frames: int, count: int) -> list[int]:
    """Evenly spaced frame indices, first one at 0."""
    if total_frames <= 0:
        raise FrameExtractionError("Cannot extract frames from a live stream.")
    if count < 1:
        raise ValueError("count must be >= 1")
    count = min(count, total_frames)
    return [i * total_frames // count for i in range(count)]


class BaseFrameExtractor(ABC):
    """Reduces a video to an ordered list of still frames."""

    @abstractmethod
    async def extract(self, video: VideoAsset, count: int) -> list[ImageAsset]:
        """Return up to ``count`` frames in playback order.

        Raises:
            FrameExtractionError: The video is unreadable or unbounded.
        """


class OpenCVFrameExtractor(BaseFrameExtractor):
    """Frame extraction with OpenCV (``pip install factlens[video]``)."""

    def __init__(self, jpeg_quality: int = 80) -> None:
        self._jpeg_quality = jpeg_quality

    async def extract(self, video: VideoAsset, count: int) -> list[ImageAsset]:
        # cv2 decoding is blocking; keep the event loop free.
        return await asyncio.to_thread(self._extract_sync, video, count)

    def _extract_sync(self, video: VideoAsset, count: int) -> list[ImageAsset]:
        try:
            import cv2
        except ImportError as e:
            raise ImportError(
                "opencv-python-headless required for video input: pip install factlens[video]"
            ) from e

        capture = cv2.VideoCapture(str(video.path))
        if not capture.isOpened():
            raise FrameExtractionError(f"Error loading video file {video.display_name!r}")

        try:
            total = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
            frames: list[ImageAsset] = []
            for n, position in enumerate(frame_positions(total, count)):
                capture.set(cv2.CAP_PROP_POS_FRAMES, position)
                ok, frame = capture.read()
                if not ok:
                    logger.debug("Could not read frame %d of %s", position, video.display_name)
                    continue
                ok, buffer = cv2.imencode(
                    ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality]
                )
                if ok:
                    frames.append(
                        ImageAsset(
                            data=buffer.tobytes(),
                            media_type="image/jpeg",
                            name=f"{video.display_name}#frame{n}",
                        )
                    )
        finally:
            capture.release()

        if not frames:
            raise FrameExtractionError(f"No frames could be read from {video.display_name!r}")
        logger.info("Extracted %d frames from %s", len(frames), video.display_name)
        return frames
