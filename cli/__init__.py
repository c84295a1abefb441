import argparse
import sys

from cli.run import cmd_run
from cli.status import cmd_status
from pipeline.scanner import PHASE_ORDER


COMMANDS = ("run", "status")


def add_workspace_argument(parser):
    parser.add_argument(
        '--workspace', '-w',
        help='Workspace directory (default: $SCANWIKI_WORKSPACE or ./workspace)'
    )


def create_parser():
    parser = argparse.ArgumentParser(
        prog='scanwiki',
        description='scanwiki - Turn scanned book PDFs into wiki projects',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run every phase over ./workspace (same as `scanwiki run`)
  scanwiki

  # Another workspace, one phase only
  scanwiki run --workspace ~/scans --phase build-ocr

  # Unattended: never prompt for ISBNs, import through the API
  scanwiki run --non-interactive --import-transport api

  # What is left to do
  scanwiki status
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')
    subparsers.required = True

    run_parser = subparsers.add_parser('run', help='Run the pipeline (default)')
    add_workspace_argument(run_parser)
    run_parser.add_argument(
        '--phase',
        choices=[phase.value for phase in PHASE_ORDER],
        help='Run a single phase'
    )
    run_parser.add_argument(
        '--non-interactive',
        action='store_true',
        help='Never prompt for an ISBN (books without one are skipped)'
    )
    run_parser.add_argument(
        '--import-transport',
        choices=['gui', 'api', 'none'],
        help='How pages reach the wiki (default from config: gui)'
    )
    run_parser.set_defaults(func=cmd_run)

    status_parser = subparsers.add_parser('status', help='Show pending work per phase')
    add_workspace_argument(status_parser)
    status_parser.set_defaults(func=cmd_status)

    return parser


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)

    # no command means run
    if not any(arg in COMMANDS for arg in argv) and not {'-h', '--help'} & set(argv):
        argv.insert(0, 'run')

    parser = create_parser()
    args = parser.parse_args(argv)
    args.func(args)
