"""
Image Loader
============

Fire-and-forget loading of artwork frames from disk.

The FileImageLoader reads a JPEG, validates that OpenCV can decode it,
and keeps the encoded bytes in memory so the artwork endpoint can serve
them without touching the disk again. Anything not prefetched is read on
demand by read().

Design Rules:
    - submit() returns immediately, work happens in a worker thread
    - Failures are counted and logged at DEBUG, never raised to the caller
    - release() drops stored bytes and cancels a pending load
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

import cv2
import numpy as np

from nowplaying_sync.artwork.naming import ArtworkReference


logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when an artwork file cannot be decoded."""
    pass


class ImageLoader(Protocol):
    """
    Protocol for the image-loading subsystem.
    
    Implementations must not block and must not raise from submit().
    """
    
    def submit(self, ref: ArtworkReference) -> None:
        """Begin loading a reference in the background."""
        ...
    
    def release(self, ref: ArtworkReference) -> None:
        """Forget a reference that left the prefetch window."""
        ...


def read_jpeg(path: Path) -> bytes:
    """
    Read and validate a JPEG file.
    
    Args:
        path: File to read
        
    Returns:
        The encoded file bytes
        
    Raises:
        OSError: If the file cannot be read
        ImageDecodeError: If OpenCV cannot decode the content
    """
    data = path.read_bytes()
    
    nparr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    
    if image is None:
        raise ImageDecodeError(f"cv2.imdecode returned None for {path.name}")
    if len(image.shape) != 3 or image.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape for {path.name}: {image.shape}")
    
    return data


class FileImageLoader:
    """
    Loads artwork frames from a directory in a worker thread.
    
    Attributes:
        frames_dir: Directory holding the pre-rendered frames
        loaded_count: Successful loads
        failed_count: Failed loads (missing or corrupt files)
    """
    
    def __init__(self, frames_dir: Union[str, Path]) -> None:
        self.frames_dir = Path(frames_dir)
        
        self._images: Dict[str, bytes] = {}
        self._pending: Dict[str, asyncio.Task] = {}
        
        self.loaded_count: int = 0
        self.failed_count: int = 0
    
    @property
    def stored_count(self) -> int:
        return len(self._images)
    
    def submit(self, ref: ArtworkReference) -> None:
        name = ref.filename
        if name in self._images or name in self._pending:
            return
        
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, skipping prefetch of {name}")
            return
        
        task = loop.create_task(self._load(name), name=f"prefetch:{name}")
        self._pending[name] = task
        task.add_done_callback(lambda t, n=name: self._forget_task(n, t))
    
    def release(self, ref: ArtworkReference) -> None:
        name = ref.filename
        self._images.pop(name, None)
        task = self._pending.pop(name, None)
        if task is not None:
            task.cancel()
    
    def get(self, filename: str) -> Optional[bytes]:
        """Prefetched bytes for a file name, if present."""
        return self._images.get(filename)
    
    def read(self, filename: str) -> bytes:
        """
        Bytes for a file name, falling back to an on-demand disk read.
        
        Raises:
            OSError: If the file is missing
            ImageDecodeError: If the file is corrupt
        """
        data = self._images.get(filename)
        if data is not None:
            return data
        return read_jpeg(self.frames_dir / filename)
    
    async def close(self) -> None:
        """Cancel pending loads and drop stored bytes."""
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self._images.clear()
    
    async def _load(self, name: str) -> None:
        try:
            data = await asyncio.to_thread(read_jpeg, self.frames_dir / name)
        except (OSError, ImageDecodeError) as e:
            self.failed_count += 1
            logger.debug(f"Prefetch failed for {name}: {e}")
            return
        
        self._images[name] = data
        self.loaded_count += 1
    
    def _forget_task(self, name: str, task: asyncio.Task) -> None:
        if self._pending.get(name) is task:
            del self._pending[name]
    
    def metrics(self) -> dict:
        return {
            "stored": len(self._images),
            "pending": len(self._pending),
            "loaded_count": self.loaded_count,
            "failed_count": self.failed_count,
        }
