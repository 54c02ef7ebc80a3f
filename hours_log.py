"""
Punch log model and its JSON snapshot.

The snapshot maps project name -> ISO date -> ordered list of punches:

    {
      "acme": {
        "2024-03-01": [
          {"type": "Start", "time": "09:00", "tolerance": 900},
          {"type": "End", "time": "12:00", "tolerance": 900}
        ]
      }
    }
"""
import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

logger = logging.getLogger(__name__)

TIME_FORMAT = '%H:%M'
MAX_TOLERANCE = 2 ** 32 - 1  # stored as an unsigned 32-bit count of seconds


class LogFormatError(ValueError):
    """The snapshot could not be parsed into a punch log."""


class PunchKind(Enum):
    START = 'Start'
    END = 'End'


@dataclass
class Punch:
    kind: PunchKind
    time: object  # datetime.time
    tolerance: int  # seconds a later punch may merge into this one

    @property
    def is_start(self):
        return self.kind is PunchKind.START

    @property
    def is_end(self):
        return self.kind is PunchKind.END


def new_log():
    """Return an empty log: project -> {date -> [Punch, ...]}"""
    return {}


def day_log(log, project, day):
    """Return the punch list for (project, day), creating it when missing."""
    return log.setdefault(project, {}).setdefault(day, [])


# ------------------------ Time Utilities ------------------------
def parse_clock(text):
    """
    Parse a time of day.
    Accepts HH:MM, HH:MM:SS and HH:MM:SS.fraction (older snapshots kept seconds).
    """
    head, _, fraction = text.strip().partition('.')
    if fraction and not fraction.isdigit():
        raise ValueError(f"Invalid time of day: '{text}'")

    for fmt in ('%H:%M:%S', TIME_FORMAT):
        try:
            parsed = datetime.strptime(head, fmt).time()
        except ValueError:
            continue
        if fraction:
            parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, '0')))
        return parsed

    raise ValueError(f"Invalid time of day: '{text}'")


def format_clock(t):
    """Render a time of day as HH:MM"""
    return t.strftime(TIME_FORMAT)


# ------------------------ Loader ------------------------
def _parse_punch(entry, where):
    if not isinstance(entry, dict):
        raise LogFormatError(f"{where}: punch must be an object, got {type(entry).__name__}")

    missing = {'type', 'time', 'tolerance'} - set(entry.keys())
    if missing:
        raise LogFormatError(f"{where}: missing required fields: {', '.join(sorted(missing))}")

    try:
        kind = PunchKind(entry['type'])
    except ValueError:
        raise LogFormatError(f"{where}: unknown punch type {entry['type']!r}, expected 'Start' or 'End'")

    if not isinstance(entry['time'], str):
        raise LogFormatError(f"{where}: time must be a string, got {type(entry['time']).__name__}")
    try:
        clock = parse_clock(entry['time'])
    except ValueError as e:
        raise LogFormatError(f"{where}: {e}")

    tolerance = entry['tolerance']
    if isinstance(tolerance, bool) or not isinstance(tolerance, int) or not 0 <= tolerance <= MAX_TOLERANCE:
        raise LogFormatError(f"{where}: tolerance must be an integer between 0 and {MAX_TOLERANCE}, got {tolerance!r}")

    return Punch(kind=kind, time=clock, tolerance=tolerance)


def parse_log(text, source='<string>'):
    """
    Parse a JSON snapshot into a log.
    Empty input yields an empty log; anything unparseable raises LogFormatError.
    """
    if not text.strip():
        logger.warning("%s was empty, using default", source)
        return new_log()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LogFormatError(f"Invalid JSON in {source}: {e}")

    if not isinstance(data, dict):
        raise LogFormatError(f"{source}: top level must be an object of projects, got {type(data).__name__}")

    log = new_log()
    for project, days in data.items():
        if not isinstance(days, dict):
            raise LogFormatError(f"{source}: project {project!r} must map dates to punches")

        entries = {}
        for day_str, punches in days.items():
            try:
                day = date.fromisoformat(day_str)
            except ValueError:
                day = None
            # canonical YYYY-MM-DD only
            if day is None or day.isoformat() != day_str:
                raise LogFormatError(f"{source}: project {project!r}: invalid date {day_str!r}, expected YYYY-MM-DD")
            if not isinstance(punches, list):
                raise LogFormatError(f"{source}: project {project!r}, {day_str}: punches must be a list")

            entries[day] = [
                _parse_punch(entry, f"{source}: project {project!r}, {day_str}, punch {idx}")
                for idx, entry in enumerate(punches)
            ]
        log[project] = entries

    return log


def load_log(path):
    """
    Load the log snapshot at path.
    A missing file is not an error: it yields an empty log.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except FileNotFoundError:
        logger.info("no log at %s yet, starting empty", path)
        return new_log()
    except UnicodeDecodeError as e:
        raise LogFormatError(f"{path}: not valid UTF-8 ({e})")

    log = parse_log(text, source=str(path))
    logger.debug("read %d project(s) from %s", len(log), path)
    return log


# ------------------------ Persister ------------------------
def log_to_data(log):
    """Convert a log into JSON-serializable data with sorted projects and dates."""
    return {
        project: {
            day.isoformat(): [
                {'type': p.kind.value, 'time': format_clock(p.time), 'tolerance': p.tolerance}
                for p in log[project][day]
            ]
            for day in sorted(log[project])
        }
        for project in sorted(log)
    }


def dump_log(log):
    return json.dumps(log_to_data(log), indent=2) + '\n'


def save_log(log, path):
    """Overwrite the snapshot at path with the complete log."""
    parent = os.path.dirname(os.fspath(path))
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(path, 'w', encoding='utf-8') as f:
        f.write(dump_log(log))
    logger.debug("wrote %d project(s) to %s", len(log), path)
