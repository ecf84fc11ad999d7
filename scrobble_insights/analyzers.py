"""Analyzers selectable by name, sharing a configure/run interface"""
import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from scrobble_insights.analysis.discovery import get_new_albums, get_new_artists
from scrobble_insights.analysis.forgotten import get_forgotten_albums, get_forgotten_artists
from scrobble_insights.analysis.report import generate_report
from scrobble_insights.analysis.sources import (
    SKIP, SkipReport, check_sources, cooldown_active, simulate_history
)
from scrobble_insights.analysis.top import build_top_n
from scrobble_insights.config import (
    ForgottenConfig, NewMusicConfig, ReportConfig, SourceCheckConfig, TopNConfig, build_config
)
from scrobble_insights.errors import AnalysisError, ConfigurationError
from scrobble_insights.services.storage import StorageService
from scrobble_insights.utils.timestamps import subtract_months

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MONTHS = 12


@dataclass(frozen=True)
class Window:
    """Analysis window. `end` doubles as the reference "now"; None means the current time."""
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None

    def now(self) -> datetime.datetime:
        return self.end or datetime.datetime.now(datetime.UTC)

    def bounds(self) -> Tuple[datetime.datetime, datetime.datetime]:
        """[start, end) for windowed analyzers; an open start covers the year before the end"""
        end = self.now()
        return self.start or subtract_months(end, DEFAULT_WINDOW_MONTHS), end


@dataclass(frozen=True)
class Analysis:
    """Result of an analyzer run"""
    name: str
    summary: str
    data: Any


class Analyzer(ABC):
    """
    Common shape of all analyzers: configure once with validated
    parameters, then run against a window.
    """
    name: ClassVar[str]
    config_model: ClassVar[Type[BaseModel]]

    def __init__(self, storage: StorageService, user: str):
        if not user:
            raise ConfigurationError("A user is required")
        self.storage = storage
        self.user = user
        self.config = self.config_model()

    def configure(self, params: Optional[Mapping[str, Any]] = None) -> None:
        """Replace the config. Raises ConfigurationError; no query is issued."""
        self.config = build_config(self.config_model, params)

    @abstractmethod
    def run(self, window: Window) -> Any:
        """Returns an Analysis, or SKIP when there is nothing to report"""


class TasteReportAnalyzer(Analyzer):
    name = 'taste-report'
    config_model = ReportConfig

    def run(self, window: Window) -> Analysis:
        report = generate_report(self.storage, self.user, self.config, now=window.now())
        summary = (
            f"{report.metadata.total_scrobbles} scrobbles, "
            f"{len(report.taste_drift.declined_tags)} declined and "
            f"{len(report.taste_drift.emerged_tags)} emerged tags"
        )
        return Analysis(name=self.name, summary=summary, data=report)


class ForgottenAnalyzer(Analyzer):
    name = 'forgotten'
    config_model = ForgottenConfig

    def run(self, window: Window) -> Analysis:
        now = window.now()
        artists = get_forgotten_artists(self.storage, self.user, self.config, now)
        albums = get_forgotten_albums(self.storage, self.user, self.config, now)
        count = sum(len(v) for v in artists.values()) + sum(len(v) for v in albums.values())
        return Analysis(
            name=self.name,
            summary=f"{count} forgotten artists and albums",
            data={'artists': artists, 'albums': albums},
        )


class SourceCheckAnalyzer(Analyzer):
    name = 'check-sources'
    config_model = SourceCheckConfig

    def run(self, window: Window) -> Any:
        now = window.now()
        if self.config.history_days > 0:
            triggered = simulate_history(self.storage, self.user, self.config, now=now)
            if not triggered:
                return SKIP
            return Analysis(
                name=self.name,
                summary=f"Issues would have been detected on {len(triggered)} days",
                data=triggered,
            )

        result = check_sources(self.storage, self.user, self.config, as_of=now)
        if isinstance(result, SkipReport):
            return SKIP
        if cooldown_active(self.storage, self.user, self.config.cooldown_days, now, command=self.name):
            return SKIP
        return Analysis(name=self.name, summary="Scrobbling issues detected", data=result)


class TopNAnalyzer(Analyzer):
    name = 'top-n'
    config_model = TopNConfig

    def run(self, window: Window) -> Analysis:
        start, end = window.bounds()
        report = build_top_n(self.storage, self.user, start, end, self.config)
        return Analysis(
            name=self.name,
            summary=f"{report.total_scrobbles} scrobbles in {report.period}",
            data=report,
        )


class NewArtistsAnalyzer(Analyzer):
    name = 'new-artists'
    config_model = NewMusicConfig

    def run(self, window: Window) -> Analysis:
        start, end = window.bounds()
        report = get_new_artists(self.storage, self.user, start, end, self.config.number)
        return Analysis(name=self.name, summary=f"{len(report.entries)} new artists", data=report)


class NewAlbumsAnalyzer(Analyzer):
    name = 'new-albums'
    config_model = NewMusicConfig

    def run(self, window: Window) -> Analysis:
        start, end = window.bounds()
        report = get_new_albums(self.storage, self.user, start, end, self.config.number)
        return Analysis(name=self.name, summary=f"{len(report.entries)} new albums", data=report)


ANALYZERS: Dict[str, Type[Analyzer]] = {
    analyzer.name: analyzer
    for analyzer in (
        TasteReportAnalyzer, ForgottenAnalyzer, SourceCheckAnalyzer,
        TopNAnalyzer, NewArtistsAnalyzer, NewAlbumsAnalyzer,
    )
}


def _analyzer_class(name: str) -> Type[Analyzer]:
    if name not in ANALYZERS:
        raise ConfigurationError(
            f"Unknown analyzer {name!r}; expected one of {', '.join(sorted(ANALYZERS))}"
        )
    return ANALYZERS[name]


def resolve_config(name: str, params: Optional[Mapping[str, Any]] = None) -> BaseModel:
    """
    Validate parameters for the named analyzer without touching the Store.

    Raises:
        ConfigurationError: For an unknown analyzer or invalid parameters
    """
    return build_config(_analyzer_class(name).config_model, params)


def get_analyzer(name: str, storage: StorageService, user: str,
                 params: Optional[Mapping[str, Any]] = None,
                 config: Optional[BaseModel] = None) -> Analyzer:
    """Instantiate and configure an analyzer by name; a validated `config` takes the place of `params`"""
    analyzer = _analyzer_class(name)(storage, user)
    if config is None:
        analyzer.configure(params)
    else:
        analyzer.config = config
    logger.info(f"Configured analyzer {name} for {user}")
    return analyzer


def run_analyzer(analyzer: Analyzer, window: Optional[Window] = None) -> Any:
    """Run an analyzer, wrapping unexpected failures in AnalysisError"""
    window = window or Window()
    try:
        return analyzer.run(window)
    except (ConfigurationError, AnalysisError):
        raise
    except (ValueError, ArithmeticError) as e:
        logger.error(f"Analyzer {analyzer.name} failed: {e}")
        raise AnalysisError(f"{analyzer.name} failed: {e}", context={'analyzer': analyzer.name}) from e
