#!/usr/bin/env python3
"""
Command line entry point: read feeds from the config and narrate recent articles.
"""

import argparse
import sys

from dotenv import load_dotenv

from .config.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from .pipeline.runner import PipelineRunner
from .utils.error_handling import RssTtsError
from .utils.logging_config import get_logger, setup_logging

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Convert recent RSS articles into narrated audio files')
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help='Path to the JSON configuration file')
    parser.add_argument('--backend', choices=['remote', 'local'], default=None,
                        help='Override the synthesis backend from the config')
    parser.add_argument('--workers', type=int, default=None, help='Override concurrent_workers')
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--log-dir', default=None, help='Directory for log files')
    parser.add_argument('--dry-run', action='store_true',
                        help='Fetch feeds and list the items that would be synthesized')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    # Console logging first so configuration problems are reported
    setup_logging(log_dir=None, log_level=args.log_level or 'INFO')
    logger = get_logger('rss_tts')

    try:
        manager = ConfigManager(args.config)
        config = manager.override(backend=args.backend, concurrent_workers=args.workers,
                                  log_level=args.log_level, log_dir=args.log_dir)
        setup_logging(log_dir=config.log_dir, log_level=config.log_level)
    except (RssTtsError, ValueError) as e:
        logger.error(f"💥 Configuration error: {e}")
        return EXIT_FATAL

    runner = PipelineRunner(config)

    try:
        if args.dry_run:
            summary = runner.plan()
            logger.info(f"📋 Dry run: {summary.enqueued} items would be synthesized")
            for request in summary.planned:
                logger.info(f"   • [{request.language_code}] {request.item.title} -> {request.directory}")
            return EXIT_OK

        summary = runner.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted, pipeline stopped after draining workers")
        return EXIT_INTERRUPTED
    except RssTtsError as e:
        logger.error(f"💥 Pipeline failed: {e}")
        return EXIT_FATAL

    stats = summary.stats
    logger.info(f"🎵 Generated: {stats.get('succeeded', 0)}  ⏭️  Skipped: {stats.get('skipped', 0)}  "
                f"❌ Failed: {stats.get('failed', 0)}")
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
