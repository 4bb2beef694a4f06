#!/usr/bin/env python3
"""
Find the third-party trackers in a directory of HAR files.

Every website is analyzed from its HAR file: the requests sent to another
organization (a different DNS SOA administrator) are sorted into tracker
categories. Results go to <dir>/results/, logs and run statistics to <dir>/logs/.
"""
import os
import sys
import argparse
import logging

from tqdm.contrib.logging import logging_redirect_tqdm

from har_trackers.analyzers.context import AnalysisContext
from har_trackers.analyzers.run_aggregator import RunAggregator
from har_trackers.config import ParserConfig
from har_trackers.managers.image_prober import ImageProber
from har_trackers.managers.soa_resolver import SOAResolver
from har_trackers.managers.tracker_database import TrackerDatabase, TrackerMatcher
from har_trackers.models import ConfigurationError, TrackerHitStats
from har_trackers.utils.exporter import ResultExporter
from har_trackers.utils.log_setup import close_logging, setup_logging
from har_trackers.utils.public_suffix_updater import load_public_suffix_file, update_public_suffix_list

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Find the third-party trackers in HAR files')
    parser.add_argument('--dir', '-d', required=True,
                        help='Directory containing the HAR files to parse')
    parser.add_argument('--ghostery', '-g', default=None,
                        help='Path to the Ghostery bugs file (optional)')
    parser.add_argument('--debug', action='store_true', default=None,
                        help='Enable the debug messages')
    parser.add_argument('--trackers', action='store_true', default=None, dest='show_trackers',
                        help='Show the number of trackers of every website')
    parser.add_argument('--config', '-c', default=None,
                        help='JSON file overriding the default parameters')
    parser.add_argument('--psl-file', default=None,
                        help='Local copy of the Public Suffix List (skips the download)')
    parser.add_argument('--no-cache', action='store_false', default=None, dest='use_cache',
                        help='Do not load or save the SOA cache')
    parser.add_argument('--progress-interval', type=float, default=None,
                        help='Seconds between two progress messages')
    return parser.parse_args(argv)


def prepare_directories(config: ParserConfig):
    """Create the logs and results subdirectories if needed."""
    if not os.path.isdir(config.directory):
        raise ConfigurationError(f"directory not found: {os.path.abspath(config.directory)}")

    for path in (config.logs_dir, config.results_dir):
        if os.path.isdir(path):
            continue
        try:
            os.makedirs(path)
        except OSError as e:
            raise ConfigurationError(f"cannot create the directory {path}, "
                                     f"please check your file system permissions ({e})") from e

    if os.listdir(config.results_dir):
        print(f"Info: the results will be saved in {config.results_dir}, "
              f"existing files may be overwritten.")


def load_public_suffixes(config: ParserConfig):
    if config.psl_file:
        try:
            return load_public_suffix_file(config.psl_file)
        except OSError as e:
            raise ConfigurationError(f"cannot read the Public Suffix List {config.psl_file}: {e}") from e
    return update_public_suffix_list()


def build_context(config: ParserConfig) -> AnalysisContext:
    public_suffixes = load_public_suffixes(config)
    resolver = SOAResolver(
        public_suffixes,
        cache_file=config.soa_cache_file,
        use_cache=config.use_cache,
        lifetime=config.dns_lifetime,
    )
    prober = ImageProber(config.image_connect_timeout, config.image_read_timeout)

    if not config.ghostery_file:
        return AnalysisContext(resolver=resolver, prober=prober)

    logger.info("Retrieving the database of trackers from Ghostery...")
    database = TrackerDatabase.load(config.ghostery_file)
    stats = TrackerHitStats(database.tracker_names)
    return AnalysisContext(
        resolver=resolver,
        prober=prober,
        stats=stats,
        matcher=TrackerMatcher(database, stats),
    )


def run(config: ParserConfig):
    logger.info("Launching parser...")
    logger.info("   directory: %s", config.directory)
    logger.info("   Ghostery file: %s", config.ghostery_file or '')
    logger.info("   debug: %s", config.debug)

    context = build_context(config)
    exporter = ResultExporter(config.results_dir, config.logs_dir)
    aggregator = RunAggregator(
        config.directory,
        context,
        exporter,
        show_trackers=config.show_trackers,
        progress_interval=config.progress_interval,
        debug=config.debug,
    )
    try:
        with logging_redirect_tqdm():
            aggregator.run()
    finally:
        context.resolver.save_cache()
    aggregator.log_summary()
    return aggregator.summary


def main(argv=None):
    args = parse_args(argv)
    try:
        config = ParserConfig.from_sources(
            args.dir,
            config_file=args.config,
            ghostery_file=args.ghostery,
            debug=args.debug,
            show_trackers=args.show_trackers,
            psl_file=args.psl_file,
            use_cache=args.use_cache,
            progress_interval=args.progress_interval,
        )
        prepare_directories(config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_file, config.debug)
    try:
        run(config)
    except ConfigurationError as e:
        logger.error("Error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, the statistics computed so far have been written")
        return 130
    finally:
        close_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
