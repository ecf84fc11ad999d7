"""Application configuration and environment settings"""
import datetime
import logging
from functools import lru_cache
from typing import Any, Literal, Mapping, Optional, Tuple, Type, TypeVar, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrobble_insights.errors import ConfigurationError
from scrobble_insights.utils.timestamps import is_relative, parse_date_string, parse_timestamp

SortMode = Literal['dormancy', 'listens']


def load_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising ValueError for unknown names"""
    if not name:
        raise ValueError("timezone name cannot be empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown timezone {name!r}")


class BandThresholds(BaseModel):
    """Minimum total scrobbles for each interest band"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    obsession: int = Field(..., description="Minimum scrobbles for the Obsession band")
    strong: int = Field(..., description="Minimum scrobbles for the Strong band")
    moderate: int = Field(..., description="Minimum scrobbles for the Moderate band")

    @model_validator(mode='after')
    def check_order(self) -> 'BandThresholds':
        if self.moderate <= 0:
            raise ValueError("moderate threshold must be positive")
        if not self.obsession > self.strong > self.moderate:
            raise ValueError(
                f"thresholds must be strictly ordered obsession > strong > moderate, "
                f"got {self.obsession}/{self.strong}/{self.moderate}"
            )
        return self


ARTIST_BAND_THRESHOLDS = BandThresholds(obsession=120, strong=50, moderate=15)
ALBUM_BAND_THRESHOLDS = BandThresholds(obsession=60, strong=30, moderate=10)


class ReportConfig(BaseModel):
    """Limits and periods for the taste report"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    current_period_months: int = Field(18, gt=0, description="Length of the current taste period")
    artist_limit: int = Field(30, gt=0, description="Top artists per period")
    album_limit: int = Field(20, gt=0, description="Top albums in the current period")
    tag_limit: int = Field(40, gt=0, description="Weighted tags per period")
    albums_per_artist: int = Field(3, ge=0, description="Top albums listed for each current artist")
    tags_per_subject: int = Field(3, ge=0, description="Raw tags listed for each artist or album")
    new_artist_months: int = Field(12, gt=0, description="Look-back for counting newly discovered artists")
    album_oriented_threshold: float = Field(3.0, gt=0, description="Average tracks per album for album-oriented listening")


class ForgottenConfig(BaseModel):
    """Filters, bands and ordering for forgotten artists and albums"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    min_artist_scrobbles: int = Field(10, ge=0, description="Minimum scrobbles for artist inclusion")
    min_album_scrobbles: int = Field(5, ge=0, description="Minimum scrobbles for album inclusion")
    results_per_band: int = Field(10, gt=0, description="Max results kept per interest band")
    sort_by: SortMode = Field('dormancy', description="'dormancy' or 'listens'")
    dormancy_days: int = Field(90, ge=0, description="Default last-listen cutoff, in days before now")

    # Inclusive window filters: an instant, or an age such as "90d" counted back from the run time.
    # None means unbounded (or the dormancy cutoff for last_listen_before)
    last_listen_after: Optional[Union[datetime.datetime, str]] = None
    last_listen_before: Optional[Union[datetime.datetime, str]] = None
    first_listen_after: Optional[Union[datetime.datetime, str]] = None
    first_listen_before: Optional[Union[datetime.datetime, str]] = None

    artist_thresholds: BandThresholds = ARTIST_BAND_THRESHOLDS
    album_thresholds: BandThresholds = ALBUM_BAND_THRESHOLDS

    @field_validator('last_listen_after', 'last_listen_before', 'first_listen_after', 'first_listen_before',
                     mode='before')
    @classmethod
    def parse_bound(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            return None
        if is_relative(text):
            return text
        try:
            return parse_date_string(text)[0]
        except ValueError:
            return parse_timestamp(text)

    @field_validator('last_listen_after', 'last_listen_before', 'first_listen_after', 'first_listen_before')
    @classmethod
    def as_utc(cls, value: Optional[Union[datetime.datetime, str]]) -> Optional[Union[datetime.datetime, str]]:
        if value is None or isinstance(value, str):
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.UTC)
        return value.astimezone(datetime.UTC)

    @field_validator('artist_thresholds', 'album_thresholds', mode='before')
    @classmethod
    def merge_thresholds(cls, value: Any, info: ValidationInfo) -> Any:
        # Partial overrides keep the remaining defaults
        if isinstance(value, Mapping):
            defaults = ARTIST_BAND_THRESHOLDS if info.field_name == 'artist_thresholds' else ALBUM_BAND_THRESHOLDS
            return {**defaults.model_dump(), **value}
        return value


class TopNConfig(BaseModel):
    """Section sizes for the top-n listing"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    artists: int = Field(10, ge=0, description="Top artists listed, 0 skips the section")
    albums: int = Field(10, ge=0, description="Top albums listed, 0 skips the section")
    tracks: int = Field(10, ge=0, description="Top tracks listed, 0 skips the section")
    tags: int = Field(5, ge=0, description="Raw tags listed for each top artist and album")


class NewMusicConfig(BaseModel):
    """Result size for newly discovered artists and albums"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    number: int = Field(0, ge=0, description="Max results, 0 lists all")


class SourceCheckConfig(BaseModel):
    """Window, work hours and streak thresholds for scrobble source checks"""
    model_config = ConfigDict(frozen=True, extra='forbid')

    days: int = Field(14, gt=0, description="Number of days to check back")
    timezone: str = Field('UTC', description="IANA timezone used for calendar days and work hours")
    work_hours: str = Field('09-17', description="Work hours interval as 'start-end', end exclusive")
    work_streak: int = Field(3, ge=0, description="Weekdays without work-hour listens tolerated")
    other_streak: int = Field(3, ge=0, description="Days without off-hour listens tolerated")
    weekend_streak: int = Field(4, gt=0, description="Silent weekend days that trigger a warning")
    history_days: int = Field(0, ge=0, description="Simulate the check for each of the past N days")
    cooldown_days: int = Field(0, ge=0, description="Days to wait before repeating a warning")

    @field_validator('timezone')
    @classmethod
    def check_timezone(cls, value: str) -> str:
        load_timezone(value)
        return value

    @field_validator('work_hours')
    @classmethod
    def check_work_hours(cls, value: str) -> str:
        parse_work_hours(value)
        return value

    @property
    def zone(self) -> ZoneInfo:
        return load_timezone(self.timezone)

    @property
    def work_hour_range(self) -> Tuple[int, int]:
        return parse_work_hours(self.work_hours)


def parse_work_hours(value: str) -> Tuple[int, int]:
    """Parse 'HH-HH' into (start, end) hours, end exclusive"""
    parts = value.split('-')
    if len(parts) != 2:
        raise ValueError(f"work hours must look like '09-17', got {value!r}")
    try:
        start, end = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"work hours must be numeric, got {value!r}")
    if not 0 <= start < end <= 24:
        raise ValueError(f"work hours must satisfy 0 <= start < end <= 24, got {value!r}")
    return start, end


ConfigT = TypeVar('ConfigT', bound=BaseModel)


def build_config(model: Type[ConfigT], params: Optional[Mapping[str, Any]] = None) -> ConfigT:
    """Validate parameters into a typed config, raising ConfigurationError on bad values"""
    try:
        return model.model_validate(dict(params or {}))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__}: {e.errors(include_url=False)}",
            context={'params': dict(params or {})},
        ) from e


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    DATABASE_URL: str = Field('sqlite:///scrobbles.db', description="SQLAlchemy database URL")
    LASTFM_USER: Optional[str] = Field(None, description="Default user whose history is analysed")
    TIMEZONE: str = Field('UTC', description="Default IANA timezone for source checks")
    LOG_LEVEL: str = Field('INFO', description="Logging level for the command line entry point")

    # Output directory with default; results go to stdout when unset
    OUTPUT_DIR: Optional[str] = Field(None, description="Directory for output files")

    @field_validator('TIMEZONE')
    @classmethod
    def check_timezone(cls, value: str) -> str:
        load_timezone(value)
        return value

    @field_validator('LOG_LEVEL')
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load settings from the environment on first use"""
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid environment settings: {e.errors(include_url=False)}"
        ) from e
