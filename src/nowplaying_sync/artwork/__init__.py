"""
Artwork Module
==============

Frame artwork naming, prefetch bookkeeping, and loading.

    - ArtworkCatalog / ArtworkReference: position -> frame -> locator
    - FrameArtworkCache: bounded FIFO prefetch window
    - FileImageLoader: fire-and-forget OpenCV-validated loads
"""

from nowplaying_sync.artwork.naming import (
    ArtworkCatalog,
    ArtworkReference,
    frame_index_for_position,
)
from nowplaying_sync.artwork.loader import (
    FileImageLoader,
    ImageDecodeError,
    ImageLoader,
    read_jpeg,
)
from nowplaying_sync.artwork.cache import FrameArtworkCache, cache_capacity


__all__ = [
    "ArtworkCatalog",
    "ArtworkReference",
    "frame_index_for_position",
    "FileImageLoader",
    "ImageDecodeError",
    "ImageLoader",
    "read_jpeg",
    "FrameArtworkCache",
    "cache_capacity",
]
