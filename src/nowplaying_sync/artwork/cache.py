"""
Frame Artwork Cache
===================

Bounded, insertion-ordered record of prefetched artwork.

The cache does not hold image data. It remembers which references have
been handed to the image loader so each one is requested only once, and
tells the loader when a reference falls out of the window.

Design Rules:
    - request() is idempotent and never blocks
    - Eviction is FIFO by insertion order (not load-completion order)
    - size <= capacity after every request()
    - Load failures are invisible here (fire-and-forget)

Playback moves forward monotonically, so insertion order approximates
usefulness order; recency tracking would add nothing for that pattern.
"""

import logging
from collections import OrderedDict
from typing import List

from nowplaying_sync.artwork.loader import ImageLoader
from nowplaying_sync.artwork.naming import ArtworkCatalog, ArtworkReference
from nowplaying_sync.models.platform import PlatformProfile


logger = logging.getLogger(__name__)


def cache_capacity(
    profile: PlatformProfile,
    strict_capacity: int = 30,
    default_capacity: int = 150,
) -> int:
    """Cache capacity for a platform (smaller on strict mobile)."""
    return strict_capacity if profile.is_strict_mobile else default_capacity


class FrameArtworkCache:
    """
    FIFO prefetch window keyed by artwork reference.
    
    Attributes:
        capacity: Maximum number of tracked references
        size: Current number of tracked references
        evicted_count: References evicted since creation
        
    Example:
        cache = FrameArtworkCache(catalog, loader, capacity=3)
        for frame in (1, 2, 3, 4):
            cache.request(frame)
        cache.frames()   # [2, 3, 4]
    """
    
    def __init__(
        self,
        catalog: ArtworkCatalog,
        loader: ImageLoader,
        capacity: int = 150,
    ) -> None:
        """
        Initialize the cache.
        
        Args:
            catalog: Artwork sequence used to build references
            loader: Image loader receiving fire-and-forget submissions
            capacity: Maximum tracked references. Must be >= 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        
        self.catalog = catalog
        self.loader = loader
        self._capacity = capacity
        self._entries: "OrderedDict[str, ArtworkReference]" = OrderedDict()
        self._evicted_count: int = 0
        self._total_requested: int = 0
    
    @property
    def capacity(self) -> int:
        return self._capacity
    
    @property
    def size(self) -> int:
        return len(self._entries)
    
    @property
    def evicted_count(self) -> int:
        return self._evicted_count
    
    def __len__(self) -> int:
        return len(self._entries)
    
    def __contains__(self, frame_index: object) -> bool:
        if not isinstance(frame_index, int) or not self.catalog.contains(frame_index):
            return False
        return self.catalog.reference(frame_index).src in self._entries
    
    def request(self, frame_index: int) -> bool:
        """
        Request prefetch of a frame.
        
        Args:
            frame_index: 1-based frame index
            
        Returns:
            True if a new load was submitted, False if the frame is out of
            range or already present.
        """
        if not self.catalog.contains(frame_index):
            return False
        
        ref = self.catalog.reference(frame_index)
        if ref.src in self._entries:
            return False
        
        self.loader.submit(ref)
        self._entries[ref.src] = ref
        self._total_requested += 1
        self.evict()
        return True
    
    def evict(self) -> None:
        """Remove the single oldest entry if over capacity."""
        if len(self._entries) <= self._capacity:
            return
        
        _, oldest = self._entries.popitem(last=False)
        self._evicted_count += 1
        self.loader.release(oldest)
        logger.debug(f"Evicted artwork frame {oldest.frame_index}")
    
    def frames(self) -> List[int]:
        """Tracked frame indices, oldest first."""
        return [ref.frame_index for ref in self._entries.values()]
    
    def clear(self) -> int:
        """
        Forget every entry.
        
        Returns:
            Number of entries cleared.
        """
        cleared = len(self._entries)
        for ref in self._entries.values():
            self.loader.release(ref)
        self._entries.clear()
        return cleared
    
    def metrics(self) -> dict:
        return {
            "size": self.size,
            "capacity": self._capacity,
            "evicted_count": self._evicted_count,
            "total_requested": self._total_requested,
        }
