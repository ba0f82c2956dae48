"""
Command Line Interface

Entry point for browsing the notes, managing the views and running the
exercises against the Sakila database.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import mariadb
import requests
from tabulate import tabulate

from sakila_notes.config import CHAPTERS, validate_config
from sakila_notes.db_connector import DatabaseConnection
from sakila_notes.exercises import (
    export_notes, get_query, get_query_info, list_queries, print_query_catalog
)
from sakila_notes.load_sakila import SakilaLoader
from sakila_notes.runner import ExerciseRunner
from sakila_notes.utils import setup_logging
from sakila_notes.views import drop_views, install_views, view_status

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Returns:
        Configured parser with one subcommand per action
    """
    parser = argparse.ArgumentParser(
        prog='sakila-notes',
        description='Annotated SQL notes on window functions and views, run against Sakila',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  List the analytic functions chapter:
    sakila-notes list --chapter 16

  Record expectations from a known-good server:
    sakila-notes run --record

  Check one exercise against its expectation:
    sakila-notes run --key rolling_sum
        """
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override LOG_LEVEL for this invocation'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    list_parser = subparsers.add_parser('list', help='List exercises')
    list_parser.add_argument('--chapter', type=int, choices=sorted(CHAPTERS),
                             help='Only list one chapter')

    show_parser = subparsers.add_parser('show', help='Show the notes and SQL of an exercise')
    show_parser.add_argument('key', help='Exercise key')

    export_parser = subparsers.add_parser('export', help='Write annotated .sql notes files')
    export_parser.add_argument('--output', type=str,
                               help='Output directory (default: notes/)')

    views_parser = subparsers.add_parser('views', help='Install, drop or inspect views')
    views_parser.add_argument('action', choices=['install', 'drop', 'status'])

    run_parser = subparsers.add_parser('run', help='Run exercises against the database')
    run_parser.add_argument('--chapter', type=int, choices=sorted(CHAPTERS),
                            help='Only run one chapter')
    run_parser.add_argument('--key', action='append', dest='keys',
                            help='Exercise key to run (repeatable)')
    run_parser.add_argument('--record', action='store_true',
                            help='Record result sets as the new expectations')
    run_parser.add_argument('--save', action='store_true',
                            help='Save the run results to CSV')

    load_parser = subparsers.add_parser('load', help='Load the Sakila sample database')
    load_parser.add_argument('--skip-download', action='store_true',
                             help='Use an archive already in data/')
    load_parser.add_argument('--skip-schema', action='store_true',
                             help='Only recreate the payment partitions and validate')

    return parser


def cmd_list(args: argparse.Namespace) -> int:
    print_query_catalog(args.chapter)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    try:
        info = get_query_info(args.key)
    except KeyError as e:
        print(f"Error: {e.args[0]}")
        return 1

    print(f"{info['name']} ({info['key']})")
    print(f"{info['chapter_title']} / {info['section']}  [{info['kind']}]")
    print()
    for line in info['notes']:
        print(f"-- {line}")
    if info['notes']:
        print()
    print(get_query(args.key) + ";")
    if info['verify_sql']:
        print()
        print(info['verify_sql'].strip() + ";")
    if info['expect_error']:
        print()
        print(f"Expected error: {info['expect_error']['errno']} ({info['expect_error']['match']})")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    for path in export_notes(Path(args.output) if args.output else None):
        print(f"Wrote {path}")
    return 0


def cmd_views(args: argparse.Namespace) -> int:
    with DatabaseConnection() as conn:
        if args.action == 'install':
            for name in install_views(conn):
                print(f"Installed {name}")
        elif args.action == 'drop':
            for name in drop_views(conn):
                print(f"Dropped {name}")
        else:
            rows = []
            for info in view_status(conn):
                updatable = info.get('is_updatable')
                rows.append([
                    info['name'],
                    'yes' if info['installed'] else 'no',
                    '' if updatable is None else ('yes' if updatable else 'no'),
                    info.get('check_option', '')
                ])
            print(tabulate(rows, headers=['View', 'Installed', 'Updatable', 'Check option'],
                           tablefmt='grid'))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    keys = args.keys or list_queries(args.chapter)
    try:
        runner = ExerciseRunner(keys, record=args.record)
    except KeyError as e:
        print(f"Error: {e.args[0]}")
        return 1
    return runner.run(save=args.save)


def cmd_load(args: argparse.Namespace) -> int:
    loader = SakilaLoader()
    if loader.run(skip_download=args.skip_download, skip_schema=args.skip_schema):
        print("\nSakila loaded successfully!")
        print("\nNext steps:")
        print("  sakila-notes run --record")
        return 0
    print("\nRow counts differ from the canonical Sakila data. Please check the output above.")
    return 1


# Commands that write under PROJECT_ROOT
WRITING_COMMANDS = {'export', 'run', 'load'}

COMMANDS = {
    'list': cmd_list,
    'show': cmd_show,
    'export': cmd_export,
    'views': cmd_views,
    'run': cmd_run,
    'load': cmd_load,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command in WRITING_COMMANDS:
            validate_config()
        return COMMANDS[args.command](args)
    except (mariadb.Error, requests.RequestException) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}")
        return 1
    except (RuntimeError, OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
