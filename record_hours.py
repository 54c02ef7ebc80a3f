"""
record-hours - personal punch clock
===================================

Each `record` punches in or out of a project for today; punching again
within the tolerance of the last punch-out moves that punch-out instead.
`show` prints the work intervals and totals per day, `export` writes a
per-day summary workbook.

Example:
    record-hours --file ~/.local/state/hours.log.json record --project acme
    record-hours show --project acme --decimal
    record-hours show --project acme --format '%d %P: %t'
    record-hours export --project acme --output hours.xlsx
"""
import argparse
import logging
import sys
from datetime import datetime

from duration_format import TemplateError
from hours_config import DEFAULT_LOG_FILE, LOG_FORMAT, LOG_LEVEL
from hours_export import export_summary
from hours_log import LogFormatError, format_clock, load_log, save_log
from hours_report import ProjectNotFoundError, write_report, write_summary
from punch_recorder import PunchRecorder

logger = logging.getLogger('record_hours')


def current_moment():
    """Local wall clock time, truncated to the minute precision of the log."""
    return datetime.now().replace(second=0, microsecond=0)


def create_parser():
    """Create and return the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='record-hours',
        description='Record punch-in/punch-out times per project and report worked hours.',
        epilog='Example: record-hours show --project acme --decimal',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '-f', '--file',
        default=DEFAULT_LOG_FILE,
        help=f'which file to record the hours in (default: {DEFAULT_LOG_FILE})'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='show debug logging on stderr'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    record = commands.add_parser('record', help='punch in or out now')
    record.add_argument('-p', '--project', default='', help='project name (default: unnamed project)')

    show = commands.add_parser('show', help='print intervals and totals per day')
    show.add_argument('-p', '--project', default='', help='project name (default: unnamed project)')
    show.add_argument(
        '-d', '--decimal',
        action='store_true',
        help='display time in decimal format: e.g. 1 hour, 45 minutes = 1.75'
    )
    show.add_argument(
        '--format',
        dest='template',
        help='print one line per day using this template (%%d %%Y %%M %%D %%t %%h %%m %%P %%%%)'
    )

    export = commands.add_parser('export', help='write a per-day summary to .xlsx or .csv')
    export.add_argument(
        '-p', '--project',
        action='append',
        dest='projects',
        help='project to include, may be repeated (default: all projects)'
    )
    export.add_argument('-o', '--output', required=True, help='output file (.xlsx or .csv)')

    return parser


def run_record(args):
    log = load_log(args.file)
    punch = PunchRecorder().record(log, args.project, current_moment())
    save_log(log, args.file)
    logger.info("%s recorded at %s for %r", punch.kind.value, format_clock(punch.time), args.project)


def run_show(args):
    log = load_log(args.file)
    if args.template is not None:
        write_summary(log, args.project, args.template, sys.stdout)
    else:
        write_report(log, args.project, sys.stdout, decimal=args.decimal)


def run_export(args):
    log = load_log(args.file)
    rows = export_summary(log, args.output, args.projects)
    logger.info("exported %d day(s) to %s", rows, args.output)


COMMANDS = {
    'record': run_record,
    'show': run_show,
    'export': run_export,
}


def main(argv=None):
    """Main entry point for the application."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else LOG_LEVEL,
        format=LOG_FORMAT,
        stream=sys.stderr
    )

    try:
        COMMANDS[args.command](args)
    except LogFormatError as e:
        print(f"Log File Error: {e}", file=sys.stderr)
        return 1
    except ProjectNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except TemplateError as e:
        print(f"Format Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"I/O Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
