"""
Artwork Naming
==============

Deterministic mapping from playback position to frame index to artwork
resource locator.

Naming scheme:
    output_{frame_index zero-padded to 4 digits}.jpg

    frame 1     -> output_0001.jpg
    frame 42    -> output_0042.jpg
    frame 6571  -> output_6571.jpg

Frame indices are 1-based:
    frame = floor(position_seconds * fps) + 1, clamped to [1, total_frames]
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ArtworkReference:
    """
    Locator for one pre-rendered frame.
    
    Attributes:
        frame_index: 1-based frame index
        filename: Zero-padded file name (e.g. "output_0042.jpg")
        src: Full locator handed to the OS integration
    """
    
    frame_index: int
    filename: str
    src: str


def frame_index_for_position(
    position_seconds: float,
    fps: float,
    total_frames: int,
) -> int:
    """
    Map a playback position to a 1-based frame index.
    
    Non-finite or negative positions map to frame 1; positions past the
    end map to the last frame.
    """
    if total_frames < 1:
        raise ValueError("total_frames must be >= 1")
    if not math.isfinite(position_seconds) or position_seconds <= 0:
        return 1
    
    frame = math.floor(position_seconds * fps) + 1
    return max(1, min(frame, total_frames))


class ArtworkCatalog:
    """
    The fixed, known-length artwork sequence.
    
    Example:
        catalog = ArtworkCatalog(base_url="/assets/frames", total_frames=6571)
        catalog.reference(42).src   # "/assets/frames/output_0042.jpg"
    """
    
    def __init__(
        self,
        base_url: str = "",
        total_frames: int = 6571,
        prefix: str = "output_",
        pad_width: int = 4,
        extension: str = "jpg",
    ) -> None:
        if total_frames < 1:
            raise ValueError("total_frames must be >= 1")
        if pad_width < 1:
            raise ValueError("pad_width must be >= 1")
        
        self.base_url = base_url.rstrip("/")
        self.total_frames = total_frames
        self.prefix = prefix
        self.pad_width = pad_width
        self.extension = extension.lstrip(".")
    
    def contains(self, frame_index: int) -> bool:
        """Whether the frame index exists in the sequence."""
        return 1 <= frame_index <= self.total_frames
    
    def filename(self, frame_index: int) -> str:
        return f"{self.prefix}{frame_index:0{self.pad_width}d}.{self.extension}"
    
    def reference(self, frame_index: int) -> ArtworkReference:
        """
        Build the locator for a frame.
        
        Raises:
            ValueError: If frame_index is outside [1, total_frames]
        """
        if not self.contains(frame_index):
            raise ValueError(
                f"Frame {frame_index} outside [1, {self.total_frames}]"
            )
        
        name = self.filename(frame_index)
        src = f"{self.base_url}/{name}" if self.base_url else name
        return ArtworkReference(frame_index=frame_index, filename=name, src=src)
    
    def frame_for_position(self, position_seconds: float, fps: float) -> int:
        return frame_index_for_position(position_seconds, fps, self.total_frames)
    
    def frame_for_filename(self, filename: str) -> int:
        """
        Parse a file name back into its frame index.
        
        Raises:
            ValueError: If the name does not follow the scheme or is out of range
        """
        suffix = f".{self.extension}"
        if not (filename.startswith(self.prefix) and filename.endswith(suffix)):
            raise ValueError(f"Not an artwork file name: {filename}")
        
        digits = filename[len(self.prefix):-len(suffix)]
        if not digits.isdigit() or len(digits) < self.pad_width:
            raise ValueError(f"Not an artwork file name: {filename}")
        
        frame_index = int(digits)
        if not self.contains(frame_index) or self.filename(frame_index) != filename:
            raise ValueError(f"Not an artwork file name: {filename}")
        return frame_index
