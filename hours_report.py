import logging

from duration_format import check_template, expand_template, format_duration
from hours_log import format_clock
from interval_builder import reconstruct

logger = logging.getLogger(__name__)


class ProjectNotFoundError(KeyError):
    """The requested project has no entries in the log."""

    def __init__(self, project):
        super().__init__(project)
        self.project = project

    def __str__(self):
        return f"project {self.project!r} is not present in log file"


def project_entries(log, project):
    try:
        return log[project]
    except KeyError:
        raise ProjectNotFoundError(project)


def project_days(log, project):
    """
    Yield (date, DayIntervals) for each day of a project in ascending order.
    Days without any Start punch are skipped with a warning.
    """
    entries = project_entries(log, project)

    def days():
        for day in sorted(entries):
            intervals = reconstruct(entries[day])
            if intervals is None:
                logger.warning("day %s is present in %r but was empty", day, project)
                continue
            yield day, intervals

    return days()


def report_lines(day, intervals, decimal=False):
    """Lines describing one day: header with the total, then one line per interval."""
    yield f"{day.isoformat()} ({format_duration(intervals.total, decimal)}):"
    for interval in intervals.intervals:
        yield f"  - {format_clock(interval.start)} - {format_clock(interval.end)}"
    if intervals.trailing_open is not None:
        yield f"  - {format_clock(intervals.trailing_open)} - "


def write_report(log, project, out, decimal=False):
    """Write the per-day report for a project to out."""
    for day, intervals in project_days(log, project):
        for line in report_lines(day, intervals, decimal):
            out.write(line + '\n')


def write_summary(log, project, template, out):
    """Write one templated line per day for a project to out."""
    check_template(template)
    for day, intervals in project_days(log, project):
        out.write(expand_template(template, day, intervals.total, project) + '\n')
