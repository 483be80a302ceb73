"""
Media Session Models
====================

Pydantic models for the data exchanged with the OS media-session
integration.

Output Contract (metadata):
    {
        "title": "Bad Apple!!",
        "artist": "Alstroemeria Records",
        "album": "Traditional Remix",
        "artwork": [
            {"src": "/assets/frames/output_0001.jpg",
             "sizes": "480x360", "type": "image/jpeg"}
        ]
    }

Output Contract (position state):
    {"duration": 219.0, "playback_rate": 1.0, "position": 12.5}

Design Rules:
    - Artwork is the single field that changes while playing
    - Position state never carries a non-finite duration
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from nowplaying_sync.artwork.naming import ArtworkReference


class PlaybackState(str, Enum):
    """Playback state advertised to the OS integration."""
    
    NONE = "none"
    PLAYING = "playing"
    PAUSED = "paused"


class MediaImage(BaseModel):
    """One artwork entry with declared dimensions and MIME type."""
    
    src: str = Field(..., min_length=1, description="Artwork resource locator")
    sizes: str = Field(default="480x360", description="Declared dimensions")
    type: str = Field(default="image/jpeg", description="MIME type")


class MediaMetadata(BaseModel):
    """Now-playing metadata pushed to the OS integration."""
    
    title: str = Field(default="", description="Track title")
    artist: str = Field(default="", description="Artist name")
    album: str = Field(default="", description="Album name")
    artwork: List[MediaImage] = Field(default_factory=list)
    
    @property
    def artwork_src(self) -> Optional[str]:
        """Locator of the first artwork entry, if any."""
        return self.artwork[0].src if self.artwork else None


class PositionState(BaseModel):
    """Position report for the OS scrubber."""
    
    duration: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Media duration in seconds",
    )
    
    playback_rate: float = Field(
        default=1.0,
        allow_inf_nan=False,
        description="Current playback rate",
    )
    
    position: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Position in seconds, within [0, duration]",
    )


class MetadataTemplate(BaseModel):
    """
    Static part of the metadata.
    
    Title, artist and album never change during a session; only the
    artwork reference is swapped per frame.
    """
    
    title: str = "Bad Apple!!"
    artist: str = "Alstroemeria Records"
    album: str = "Traditional Remix"
    artwork_sizes: str = "480x360"
    artwork_type: str = "image/jpeg"
    
    def for_artwork(self, ref: ArtworkReference) -> MediaMetadata:
        """Build full metadata for a single artwork reference."""
        return MediaMetadata(
            title=self.title,
            artist=self.artist,
            album=self.album,
            artwork=[
                MediaImage(
                    src=ref.src,
                    sizes=self.artwork_sizes,
                    type=self.artwork_type,
                )
            ],
        )


class NowPlaying(BaseModel):
    """Snapshot of the media session, served to remote panels."""
    
    metadata: Optional[MediaMetadata] = None
    position: Optional[PositionState] = None
    playback_state: PlaybackState = PlaybackState.NONE
    actions: List[str] = Field(default_factory=list)
    version: int = Field(default=0, ge=0, description="Bumped on every change")
    updated_at: float = Field(default=0.0, ge=0)
