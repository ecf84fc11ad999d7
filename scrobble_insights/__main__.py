"""Entry point for running analyzers against a listen history database"""
import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from scrobble_insights.analysis.sources import SKIP
from scrobble_insights.analyzers import (
    ANALYZERS, SourceCheckAnalyzer, Window, get_analyzer, resolve_config, run_analyzer
)
from scrobble_insights.config import Settings, load_settings
from scrobble_insights.db import db
from scrobble_insights.errors import ConfigurationError, ScrobbleInsightsError
from scrobble_insights.services.storage import StorageService
from scrobble_insights.utils.json_encoder import json_dumps
from scrobble_insights.utils.timestamps import parse_period

logger = logging.getLogger(__name__)


def parse_params(pairs: Sequence[str]) -> Dict[str, Any]:
    """
    Turn repeated ``key=value`` options into a config mapping.

    Dashes in keys become underscores, and dotted keys build nested
    mappings, so ``artist-thresholds.strong=40`` overrides a single band.

    Raises:
        ConfigurationError: If a pair has no '=' or an empty key
    """
    params: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        key = key.strip().replace('-', '_')
        if not sep or not key:
            raise ConfigurationError(f"Expected key=value, got {pair!r}")
        target = params
        *parents, leaf = key.split('.')
        for parent in parents:
            target = target.setdefault(parent, {})
            if not isinstance(target, dict):
                raise ConfigurationError(f"Parameter {parent!r} cannot be both a value and a group")
        target[leaf] = value.strip()
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='scrobble_insights',
        description="Analyse a scrobble history: taste report, forgotten music, scrobble source checks, "
                    "top artists and newly discovered music",
    )
    parser.add_argument('analyzer', choices=sorted(ANALYZERS), help="Analysis to run")
    parser.add_argument('period', nargs='*', metavar='DATE',
                        help="Window as one or two of yyyy, yyyy-mm, yyyy-mm-dd or an age like 30d")
    parser.add_argument('--user', default=None, help="User whose history is analysed (defaults to LASTFM_USER)")
    parser.add_argument('--database', default=None, help="SQLAlchemy database URL (defaults to DATABASE_URL)")
    parser.add_argument('--param', action='append', default=[], metavar='KEY=VALUE',
                        help="Analyzer parameter, may be repeated")
    parser.add_argument('--output', default=None, help="Write JSON results to this file instead of stdout")
    return parser


def parse_window(values: Sequence[str]) -> Window:
    """
    Window from positional dates; no dates leaves both ends open.

    Raises:
        ConfigurationError: If the dates do not form a valid period
    """
    if not values:
        return Window()
    try:
        start, end = parse_period(values)
    except ValueError as e:
        raise ConfigurationError(str(e), context={'period': list(values)}) from e
    return Window(start=start, end=end)


def _output_path(args: argparse.Namespace, settings: Settings) -> Optional[str]:
    if args.output:
        return args.output
    if settings.OUTPUT_DIR:
        return os.path.join(settings.OUTPUT_DIR, f"{args.analyzer}.json")
    return None


def run(argv: Optional[List[str]] = None) -> None:
    """Run one analyzer and write its result as JSON."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    session = None
    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.LOG_LEVEL)

        # Everything that can be rejected is checked before the database is opened
        params = parse_params(args.param)
        if args.analyzer == SourceCheckAnalyzer.name:
            params.setdefault('timezone', settings.TIMEZONE)
        config = resolve_config(args.analyzer, params)
        user = args.user or settings.LASTFM_USER
        if not user:
            raise ConfigurationError("A user is required: pass --user or set LASTFM_USER")
        window = parse_window(args.period)

        db.init(args.database)
        session = db.get_session()
        storage = StorageService(session)

        analyzer = get_analyzer(args.analyzer, storage, user, config=config)
        result = run_analyzer(analyzer, window)

        if result is SKIP:
            print("No scrobbling issues detected.")
            return

        logger.info(f"{result.name} complete: {result.summary}")
        payload = json_dumps(result.data, indent=2)
        output_path = _output_path(args, settings)
        if output_path:
            with open(output_path, 'w') as f:
                f.write(payload)
            logger.info(f"Results written to {output_path}")
        else:
            print(payload)

    except ScrobbleInsightsError as e:
        logger.error(f"Error during {args.analyzer}: {e}")
        if e.context:
            logger.debug(f"Error context: {e.context}")
        sys.exit(1)
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Could not write results: {e}")
        sys.exit(1)
    finally:
        if session is not None:
            session.close()
        db.dispose()


if __name__ == "__main__":
    run()
