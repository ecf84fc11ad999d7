"""Report model definitions"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class TagStat(BaseModel):
    """Share of a period's scrobbles influenced by a tag"""
    model_config = ConfigDict(frozen=True)

    tag: str
    weight: float = Field(ge=0.0, le=1.0, description="Weight rounded to 2 decimals")

class DriftTag(BaseModel):
    """A tag that vanished from, or newly appeared in, the current period"""
    model_config = ConfigDict(frozen=True)

    tag: str
    historical_weight: float = 0.0
    current_weight: float = 0.0

class TasteDrift(BaseModel):
    model_config = ConfigDict(frozen=True)

    declined_tags: List[DriftTag] = []
    emerged_tags: List[DriftTag] = []

class ArtistStat(BaseModel):
    """Artist entry of a taste profile"""
    name: str
    scrobbles: int
    in_historical_baseline: bool = False
    in_current_taste: bool = False
    peak_years: str = ''
    top_albums: List[str] = []
    primary_tags: List[str] = []

class AlbumStat(BaseModel):
    title: str
    artist: str
    scrobbles: int
    tags: List[str] = []

class TasteProfile(BaseModel):
    top_artists: List[ArtistStat] = []
    top_albums: List[AlbumStat] = []
    top_tags: List[TagStat] = []

class ProfileMetadata(BaseModel):
    generated_date: str = Field(description="Report date, YYYY-MM-DD")
    total_scrobbles: int
    total_artists: int
    listening_style: str = ''
    current_period: str = Field(description="'YYYY-MM-DD to YYYY-MM-DD'")
    historical_period: str = Field(description="'YYYY-MM-DD to YYYY-MM-DD'")

class ListeningPatterns(BaseModel):
    """
    Distribution of listening breadth for a period.

    Attributes:
        all_albums_per_artist_median/average: Distinct albums per artist, all artists
        top100_albums_per_artist_median/average: Same, restricted to the 100 most played artists
        artists_with_3plus_albums: Artists with at least 3 distinct albums played
        new_artists_in_last_12_months: Artists first heard within the look-back
        repeat_listening_ratio: (scrobbles - artists) / scrobbles, 0 when there are no scrobbles
    """
    model_config = ConfigDict(frozen=True)

    all_albums_per_artist_median: float = 0.0
    all_albums_per_artist_average: float = 0.0
    top100_albums_per_artist_median: float = 0.0
    top100_albums_per_artist_average: float = 0.0
    artists_with_3plus_albums: int = 0
    new_artists_in_last_12_months: int = 0
    repeat_listening_ratio: float = 0.0

class Report(BaseModel):
    """
    Music taste report. A data-transfer structure only; rendering
    (YAML, tables) is left to callers.
    """
    metadata: ProfileMetadata
    current_taste: TasteProfile
    historical_baseline: TasteProfile
    taste_drift: TasteDrift
    listening_patterns: ListeningPatterns

class TrackStat(BaseModel):
    name: str
    artist: str
    scrobbles: int

class TopArtist(BaseModel):
    name: str
    scrobbles: int
    tags: List[str] = []

class TopNReport(BaseModel):
    """Most played artists, albums and tracks of a window. Empty sections were skipped."""
    period: str = Field(description="'YYYY-MM-DD to YYYY-MM-DD'")
    total_scrobbles: int
    top_artists: List[TopArtist] = []
    top_albums: List[AlbumStat] = []
    top_tracks: List[TrackStat] = []

class NewSubject(BaseModel):
    """An artist (album is None) or album that took hold within the window"""
    model_config = ConfigDict(frozen=True)

    artist: str
    album: Optional[str] = None
    scrobbles: int
    previous_scrobbles: int = 0

class NewMusicReport(BaseModel):
    period: str = Field(description="'YYYY-MM-DD to YYYY-MM-DD'")
    previous_count: int = Field(description="Distinct subjects heard before the window")
    current_count: int = Field(description="Distinct subjects heard within the window")
    entries: List[NewSubject] = []
