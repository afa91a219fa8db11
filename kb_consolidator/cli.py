"""Command line interface for the knowledge base consolidator."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from kb_consolidator.config.log import setup_logging
from kb_consolidator.config.settings import load_config, write_sample_env
from kb_consolidator.core.consolidator import KnowledgeBaseConsolidator
from kb_consolidator.core.errors import ConsolidatorError

logger = logging.getLogger('kb_consolidator')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='kb-consolidate',
        description='Consolidate CSV knowledge base extracts into one deduplicated file.'
    )
    parser.add_argument('--env-file', type=Path, default=Path('.env'),
                        help='Settings file (default: .env)')
    parser.add_argument('--init-env', action='store_true',
                        help='Write a sample settings file to --env-file and exit')
    parser.add_argument('--input-directory', type=Path,
                        help='Directory holding the CSV files')
    parser.add_argument('--output-file', type=Path,
                        help='Consolidated CSV to write')
    parser.add_argument('--stats-file', type=Path,
                        help='JSON statistics report to write')
    parser.add_argument('--threshold', type=float, dest='similarity_threshold',
                        help='Similarity threshold between 0 and 1')
    parser.add_argument('--max-ai-calls', type=int,
                        help='Maximum number of backend calls for this run')
    parser.add_argument('--provider', dest='ai_provider',
                        help='Merge backend: openai or anthropic')
    parser.add_argument('--no-ai', action='store_true',
                        help='Merge with rules only')
    parser.add_argument('--log-level',
                        choices=['debug', 'info', 'warning', 'error'],
                        help='Log verbosity')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.init_env:
        path = write_sample_env(args.env_file)
        print(f"Sample settings written to {path}")
        return 0

    overrides = {
        'input_directory': args.input_directory,
        'output_file': args.output_file,
        'stats_file': args.stats_file,
        'similarity_threshold': args.similarity_threshold,
        'max_ai_calls': args.max_ai_calls,
        'ai_provider': args.ai_provider,
        'enable_ai': False if args.no_ai else None,
        'log_level': args.log_level,
    }

    try:
        config = load_config(args.env_file, overrides=overrides)
    except ConsolidatorError as e:
        setup_logging(args.log_level or 'info')
        logger.error(str(e))
        return 1

    setup_logging(config.log_level, config.log_file)

    try:
        stats = KnowledgeBaseConsolidator(config).consolidate()
    except ConsolidatorError:
        return 1
    except KeyboardInterrupt:
        logger.error("Consolidation interrupted")
        return 130

    logger.info(
        f"Consolidation completed successfully: {stats.final_unique} records "
        f"written to {config.output_file}"
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
