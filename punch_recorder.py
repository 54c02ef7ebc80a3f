import logging
from datetime import datetime, timedelta

from hours_config import DEFAULT_TOLERANCE_SECONDS
from hours_log import Punch, PunchKind, day_log, format_clock

logger = logging.getLogger(__name__)


class PunchRecorder:
    """Applies new punches to a day's punch list."""

    def __init__(self, tolerance=DEFAULT_TOLERANCE_SECONDS):
        self.tolerance = tolerance

    def within_tolerance(self, last, now):
        """
        Whether a punch at `now` still merges into the End punch `last`.
        Both are taken on now's date: punches after midnight go to the next
        day's list, so a window never merges across days.
        """
        elapsed = now - datetime.combine(now.date(), last.time)
        return elapsed <= timedelta(seconds=last.tolerance)

    def reconcile(self, punches, now):
        """
        Record a punch at `now` (a datetime) into the punch list of now's day.

        A punch within the tolerance of a trailing End slides that End forward
        instead of starting a new interval. Otherwise a Start or End is appended
        so that the list keeps alternating.
        Returns the punch that was appended or updated.
        """
        if punches:
            last = punches[-1]
            if last.is_end and self.within_tolerance(last, now):
                logger.debug("moving End from %s to %s", format_clock(last.time), format_clock(now.time()))
                last.time = now.time()
                return last

        if punches and punches[-1].is_start:
            kind = PunchKind.END
        else:
            kind = PunchKind.START

        punch = Punch(kind=kind, time=now.time(), tolerance=self.tolerance)
        punches.append(punch)
        logger.debug("appended %s at %s", kind.value, format_clock(punch.time))
        return punch

    def record(self, log, project, now):
        """Reconcile a punch at `now` into the log for the given project."""
        return self.reconcile(day_log(log, project, now.date()), now)
