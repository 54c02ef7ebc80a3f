"""
Unit tests for record-hours
"""
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from datetime import date, datetime, time, timedelta
from unittest import mock

import openpyxl
import pandas as pd

import record_hours
from duration_format import (TemplateError, check_template, decimal_duration, expand_template,
                             format_duration, human_duration)
from hours_export import export_summary, summary_frame, write_workbook
from hours_log import (LogFormatError, Punch, PunchKind, dump_log, load_log, parse_clock,
                       parse_log, save_log)
from hours_report import ProjectNotFoundError, project_days, write_report, write_summary
from interval_builder import Interval, reconstruct, total_duration
from punch_recorder import PunchRecorder

DAY = date(2024, 3, 1)


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))


def start(hour, minute=0):
    return Punch(PunchKind.START, time(hour, minute), 900)


def end(hour, minute=0):
    return Punch(PunchKind.END, time(hour, minute), 900)


SAMPLE_LOG = """
{
  "acme": {
    "2024-03-02": [
      {"type": "Start", "time": "08:30", "tolerance": 900}
    ],
    "2024-03-01": [
      {"type": "Start", "time": "09:00", "tolerance": 900},
      {"type": "End", "time": "12:00", "tolerance": 900},
      {"type": "Start", "time": "13:00", "tolerance": 900},
      {"type": "End", "time": "17:00", "tolerance": 900}
    ],
    "2024-03-03": [
      {"type": "End", "time": "10:00", "tolerance": 900}
    ]
  },
  "": {
    "2024-03-01": [
      {"type": "Start", "time": "10:00", "tolerance": 900},
      {"type": "End", "time": "10:45", "tolerance": 900}
    ]
  }
}
"""


class TestPunchRecorder(unittest.TestCase):
    """Test cases for PunchRecorder"""

    def setUp(self):
        self.recorder = PunchRecorder()

    # ==================== Appending Punches ====================
    def test_empty_day_starts(self):
        """First punch of a day is always a Start with the default tolerance"""
        punches = []
        punch = self.recorder.reconcile(punches, at(9))
        self.assertEqual(len(punches), 1)
        self.assertIs(punch.kind, PunchKind.START)
        self.assertEqual(punch.time, time(9, 0))
        self.assertEqual(punch.tolerance, 900)

    def test_open_start_is_closed(self):
        """A punch after a Start appends exactly one End"""
        punches = [start(9)]
        self.recorder.reconcile(punches, at(9, 5))
        self.assertEqual([p.kind for p in punches], [PunchKind.START, PunchKind.END])
        self.assertEqual(punches[-1].time, time(9, 5))

    def test_punch_beyond_tolerance_starts_new_interval(self):
        """A punch more than the tolerance after an End starts a new interval"""
        punches = [start(9), end(12)]
        self.recorder.reconcile(punches, at(12, 16))
        self.assertEqual(len(punches), 3)
        self.assertIs(punches[-1].kind, PunchKind.START)
        self.assertEqual(punches[1].time, time(12, 0))

    # ==================== Debouncing ====================
    def test_punch_within_tolerance_moves_end(self):
        """A punch within the tolerance of an End slides that End forward"""
        punches = [start(9), end(12)]
        punch = self.recorder.reconcile(punches, at(12, 10))
        self.assertEqual(len(punches), 2)
        self.assertIs(punch, punches[-1])
        self.assertEqual(punches[-1].time, time(12, 10))

    def test_punch_at_tolerance_boundary_merges(self):
        """The end of the tolerance window is inclusive"""
        punches = [start(9), end(12)]
        self.recorder.reconcile(punches, at(12, 15))
        self.assertEqual(len(punches), 2)
        self.assertEqual(punches[-1].time, time(12, 15))

    def test_tolerance_is_taken_from_last_punch(self):
        """The window belongs to the stored End, not to the recorder"""
        punches = [start(9), Punch(PunchKind.END, time(12, 0), 0)]
        self.recorder.reconcile(punches, at(12, 1))
        self.assertEqual(len(punches), 3)

        punches = [start(9), Punch(PunchKind.END, time(12, 0), 3600)]
        self.recorder.reconcile(punches, at(12, 59))
        self.assertEqual(len(punches), 2)

    def test_custom_tolerance_on_new_punches(self):
        """New punches carry the recorder's tolerance"""
        punch = PunchRecorder(tolerance=60).reconcile([], at(9))
        self.assertEqual(punch.tolerance, 60)

    def test_repeated_punches_alternate(self):
        """Punch kinds alternate Start, End, ... whatever the spacing"""
        punches = []
        for minutes in [0, 60, 65, 70, 200, 300, 301, 302, 500, 700]:
            self.recorder.reconcile(punches, at(8) + timedelta(minutes=minutes))

        expected = [PunchKind.START, PunchKind.END] * len(punches)
        self.assertEqual([p.kind for p in punches], expected[:len(punches)])
        self.assertEqual(len(punches), 6)

    # ==================== Day Boundary ====================
    def test_window_is_measured_on_punch_date(self):
        """A window reaching past midnight only covers the rest of that day"""
        log = {}
        self.recorder.record(log, 'acme', at(22))
        self.recorder.record(log, 'acme', at(23, 55))
        self.assertTrue(self.recorder.within_tolerance(log['acme'][DAY][-1], at(23, 59)))

        self.recorder.record(log, 'acme', at(0, 5, day=date(2024, 3, 2)))
        self.assertEqual(log['acme'][DAY][-1].time, time(23, 55))
        self.assertIs(log['acme'][date(2024, 3, 2)][0].kind, PunchKind.START)

    def test_largest_tolerance(self):
        """The largest storable tolerance merges without overflowing"""
        punches = [start(9), Punch(PunchKind.END, time(10), 2 ** 32 - 1)]
        self.recorder.reconcile(punches, at(23, 59, day=date(9999, 12, 31)))
        self.assertEqual(len(punches), 2)
        self.assertEqual(punches[-1].time, time(23, 59))

    def test_late_evening_punch_merges(self):
        """A punch before midnight still merges into a late End"""
        punches = [start(22), end(23, 55)]
        self.recorder.reconcile(punches, at(23, 59))
        self.assertEqual(len(punches), 2)
        self.assertEqual(punches[-1].time, time(23, 59))

    def test_record_uses_project_and_date(self):
        """Punches land in the day log of the given project and date"""
        log = {}
        self.recorder.record(log, 'acme', at(23, 55))
        self.recorder.record(log, 'acme', at(0, 5, day=date(2024, 3, 2)))
        self.recorder.record(log, '', at(9))

        self.assertEqual(sorted(log), ['', 'acme'])
        self.assertEqual(sorted(log['acme']), [date(2024, 3, 1), date(2024, 3, 2)])
        self.assertIs(log['acme'][date(2024, 3, 2)][0].kind, PunchKind.START)


class TestReconstruct(unittest.TestCase):
    """Test cases for interval reconstruction"""

    def test_two_closed_intervals(self):
        """A regular day yields closed intervals only"""
        result = reconstruct([start(9), end(12), start(13), end(17)])
        self.assertEqual(result.intervals, [
            Interval(time(9), time(12)),
            Interval(time(13), time(17)),
        ])
        self.assertIsNone(result.trailing_open)
        self.assertEqual(result.total, timedelta(hours=7))

    def test_single_start_is_open(self):
        """An unmatched Start is reported as ongoing work"""
        result = reconstruct([start(9)])
        self.assertEqual(result.intervals, [])
        self.assertEqual(result.trailing_open, time(9))

    def test_open_after_closed(self):
        """A Start after the last End becomes the trailing open interval"""
        result = reconstruct([start(9), end(10), start(11)])
        self.assertEqual(result.intervals, [Interval(time(9), time(10))])
        self.assertEqual(result.trailing_open, time(11))

    def test_leading_end_is_skipped(self):
        """Ends before the first Start are ignored"""
        result = reconstruct([end(8), start(9), end(10)])
        self.assertEqual(result.intervals, [Interval(time(9), time(10))])
        self.assertIsNone(result.trailing_open)

    def test_last_of_consecutive_starts_wins(self):
        """Of several Starts in a row the last one opens the interval"""
        result = reconstruct([start(9), start(10), end(11)])
        self.assertEqual(result.intervals, [Interval(time(10), time(11))])

    def test_extra_end_is_skipped(self):
        """After an End, punches up to the next Start are skipped"""
        result = reconstruct([start(9), end(10), end(11), start(12), end(13)])
        self.assertEqual(result.intervals, [
            Interval(time(9), time(10)),
            Interval(time(12), time(13)),
        ])
        self.assertIsNone(result.trailing_open)

    def test_day_without_start(self):
        """A day with no Start at all has nothing to reconstruct"""
        self.assertIsNone(reconstruct([]))
        self.assertIsNone(reconstruct([end(8), end(9)]))

    def test_negative_interval_is_kept(self):
        """Intervals ending before they start are summed as negative"""
        intervals = [Interval(time(12), time(11)), Interval(time(13), time(13, 30))]
        self.assertEqual(intervals[0].duration, timedelta(hours=-1))
        self.assertEqual(total_duration(intervals), timedelta(minutes=-30))

    def test_total_of_nothing(self):
        self.assertEqual(total_duration([]), timedelta())


class TestDurationFormat(unittest.TestCase):
    """Test cases for duration rendering and templates"""

    # ==================== Human / Decimal ====================
    def test_human_with_hours(self):
        self.assertEqual(human_duration(timedelta(minutes=90)), '1h30min')
        self.assertEqual(human_duration(timedelta(hours=2)), '2h0min')

    def test_human_without_hours(self):
        """The hour segment is omitted under one hour"""
        self.assertEqual(human_duration(timedelta(minutes=45)), '45min')
        self.assertEqual(human_duration(timedelta()), '0min')

    def test_human_truncates_seconds(self):
        self.assertEqual(human_duration(timedelta(minutes=90, seconds=59)), '1h30min')

    def test_human_negative(self):
        """Negative spans truncate toward zero"""
        self.assertEqual(human_duration(timedelta(minutes=-90)), '-1h-30min')
        self.assertEqual(human_duration(timedelta(minutes=-45)), '-45min')

    def test_decimal(self):
        self.assertEqual(decimal_duration(timedelta(minutes=90)), '1.50')
        self.assertEqual(decimal_duration(timedelta(minutes=45)), '0.75')
        self.assertEqual(decimal_duration(timedelta(minutes=-90)), '-1.50')

    def test_format_duration_switch(self):
        span = timedelta(minutes=105)
        self.assertEqual(format_duration(span), '1h45min')
        self.assertEqual(format_duration(span, decimal=True), '1.75')

    # ==================== Templates ====================
    def test_template_example(self):
        """All duration directives on one line"""
        result = expand_template('%d %P: %h h %m m (%t)', DAY, timedelta(minutes=90), 'acme')
        self.assertEqual(result, '2024-03-01 acme: 1 h 90 m (1.50)')

    def test_template_date_parts(self):
        result = expand_template('%D.%M.%Y 100%%', date(2024, 7, 4), timedelta(), '')
        self.assertEqual(result, '04.07.2024 100%')

    def test_template_plain_text(self):
        self.assertEqual(expand_template('no directives', DAY, timedelta(), 'x'), 'no directives')

    def test_template_unknown_directive(self):
        with self.assertRaises(TemplateError):
            expand_template('%d %x', DAY, timedelta(), '')

    def test_template_lone_percent(self):
        with self.assertRaises(TemplateError):
            expand_template('total %', DAY, timedelta(), '')

    def test_check_template(self):
        check_template('%d %t')
        with self.assertRaises(TemplateError):
            check_template('%q')


class TestReport(unittest.TestCase):
    """Test cases for the per-day report"""

    def setUp(self):
        self.log = parse_log(SAMPLE_LOG)

    def test_report_human(self):
        """Days are reported in ascending order with intervals and totals"""
        out = io.StringIO()
        with self.assertLogs('hours_report', level='WARNING') as logs:
            write_report(self.log, 'acme', out)

        self.assertEqual(out.getvalue(), (
            "2024-03-01 (7h0min):\n"
            "  - 09:00 - 12:00\n"
            "  - 13:00 - 17:00\n"
            "2024-03-02 (0min):\n"
            "  - 08:30 - \n"
        ))
        self.assertIn('2024-03-03', logs.output[0])

    def test_report_decimal(self):
        out = io.StringIO()
        write_report(self.log, '', out, decimal=True)
        self.assertEqual(out.getvalue(), "2024-03-01 (0.75):\n  - 10:00 - 10:45\n")

    def test_unknown_project(self):
        """Reporting a missing project fails before writing anything"""
        out = io.StringIO()
        with self.assertRaises(ProjectNotFoundError) as ctx:
            write_report(self.log, 'nope', out)
        self.assertEqual(out.getvalue(), '')
        self.assertEqual(ctx.exception.project, 'nope')
        self.assertIn('nope', str(ctx.exception))

    def test_project_days_fails_eagerly(self):
        with self.assertRaises(ProjectNotFoundError):
            project_days(self.log, 'nope')

    def test_summary_lines(self):
        out = io.StringIO()
        write_summary(self.log, 'acme', '%d %P %t', out)
        self.assertEqual(out.getvalue(), "2024-03-01 acme 7.00\n2024-03-02 acme 0.00\n")

    def test_summary_bad_template_writes_nothing(self):
        out = io.StringIO()
        with self.assertRaises(TemplateError):
            write_summary(self.log, 'acme', '%d %z', out)
        self.assertEqual(out.getvalue(), '')

    def test_write_failure_propagates(self):
        """A failing sink aborts the report with the I/O error"""
        sink = mock.Mock()
        sink.write.side_effect = OSError('disk full')
        with self.assertRaises(OSError):
            write_report(self.log, '', sink)


class TestLogSnapshot(unittest.TestCase):
    """Test cases for loading and saving the log"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'hours.log.json')

    def tearDown(self):
        self.tmp.cleanup()

    # ==================== Loader ====================
    def test_parse_sample(self):
        log = parse_log(SAMPLE_LOG)
        self.assertEqual(sorted(log), ['', 'acme'])
        first = log['acme'][DAY][0]
        self.assertEqual(first, Punch(PunchKind.START, time(9, 0), 900))

    def test_missing_file_is_empty_log(self):
        with self.assertLogs('hours_log', level='INFO'):
            self.assertEqual(load_log(self.path), {})

    def test_empty_file_is_empty_log(self):
        with open(self.path, 'w') as f:
            f.write('  \n')
        with self.assertLogs('hours_log', level='WARNING'):
            self.assertEqual(load_log(self.path), {})

    def test_invalid_json(self):
        with self.assertRaises(LogFormatError):
            parse_log('{"acme": ')

    def test_invalid_structure(self):
        """Each malformed piece is rejected with a LogFormatError"""
        bad = [
            '[]',
            '{"acme": []}',
            '{"acme": {"03/01/2024": []}}',
            '{"acme": {"20240301": []}}',
            '{"acme": {"2024-3-1": []}}',
            '{"acme": {"2024-03-01": {}}}',
            '{"acme": {"2024-03-01": ["Start"]}}',
            '{"acme": {"2024-03-01": [{"type": "Start", "time": "09:00"}]}}',
            '{"acme": {"2024-03-01": [{"type": "Begin", "time": "09:00", "tolerance": 900}]}}',
            '{"acme": {"2024-03-01": [{"type": "Start", "time": "9am", "tolerance": 900}]}}',
            '{"acme": {"2024-03-01": [{"type": "Start", "time": "09:00", "tolerance": -1}]}}',
            '{"acme": {"2024-03-01": [{"type": "Start", "time": "09:00", "tolerance": "900"}]}}',
            '{"acme": {"2024-03-01": [{"type": "End", "time": "09:00", "tolerance": 4294967296}]}}',
        ]
        for text in bad:
            with self.subTest(text=text):
                with self.assertRaises(LogFormatError):
                    parse_log(text)

    def test_file_not_utf8(self):
        """Undecodable bytes are a format error, not a crash"""
        with open(self.path, 'wb') as f:
            f.write(b'{"acme": \xff\xfe}')
        with self.assertRaises(LogFormatError):
            load_log(self.path)

    def test_parse_clock_formats(self):
        """Minutes, seconds and fractional seconds are all accepted"""
        self.assertEqual(parse_clock('09:05'), time(9, 5))
        self.assertEqual(parse_clock('09:05:30'), time(9, 5, 30))
        self.assertEqual(parse_clock('09:05:30.123456789'), time(9, 5, 30, 123456))
        with self.assertRaises(ValueError):
            parse_clock('09:05:30.5x')

    # ==================== Persister ====================
    def test_dump_layout(self):
        """Projects and dates are written sorted, times as HH:MM"""
        log = {'b': {date(2024, 3, 2): [start(9)], date(2024, 3, 1): [start(8)]}, 'a': {}}
        data = json.loads(dump_log(log))
        self.assertEqual(list(data), ['a', 'b'])
        self.assertEqual(list(data['b']), ['2024-03-01', '2024-03-02'])
        self.assertEqual(data['b']['2024-03-01'], [{'type': 'Start', 'time': '08:00', 'tolerance': 900}])

    def test_save_and_load(self):
        log = parse_log(SAMPLE_LOG)
        nested = os.path.join(self.tmp.name, 'state', 'hours.log.json')
        save_log(log, nested)
        self.assertEqual(load_log(nested), log)


class TestExport(unittest.TestCase):
    """Test cases for the spreadsheet export"""

    def setUp(self):
        self.log = parse_log(SAMPLE_LOG)
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def test_summary_frame(self):
        frame = summary_frame(self.log, ['acme'])
        self.assertEqual(len(frame), 2)
        first = frame.iloc[0]
        self.assertEqual(first['Date'], '2024-03-01')
        self.assertEqual(first['First Start'], '09:00')
        self.assertEqual(first['Last End'], '17:00')
        self.assertEqual(first['Intervals'], 2)
        self.assertEqual(first['Total Minutes'], 420)
        self.assertEqual(first['Total Hours'], 7.0)
        self.assertEqual(first['Total'], '7h0min')
        self.assertEqual(frame.iloc[1]['Open Since'], '08:30')

    def test_summary_frame_all_projects(self):
        frame = summary_frame(self.log)
        self.assertEqual(list(frame['Project']), ['', 'acme', 'acme'])

    def test_summary_frame_unknown_project(self):
        with self.assertRaises(ProjectNotFoundError):
            summary_frame(self.log, ['nope'])

    def test_workbook(self):
        """The workbook has a styled header row and numeric hour cells"""
        path = os.path.join(self.tmp.name, 'hours.xlsx')
        write_workbook(summary_frame(self.log, ['acme']), path)

        ws = openpyxl.load_workbook(path)['Hours']
        self.assertEqual(ws['A1'].value, 'Project')
        self.assertTrue(ws['A1'].font.bold)
        self.assertEqual(ws.freeze_panes, 'A2')
        self.assertEqual(ws['B2'].value, '2024-03-01')
        self.assertEqual(ws['H2'].value, 7.0)
        self.assertEqual(ws['H2'].number_format, '0.00')
        self.assertEqual(ws.max_row, 3)

    def test_export_csv(self):
        path = os.path.join(self.tmp.name, 'hours.csv')
        rows = export_summary(self.log, path, [''])
        self.assertEqual(rows, 1)
        frame = pd.read_csv(path)
        self.assertEqual(frame.loc[0, 'Total Hours'], 0.75)
        self.assertEqual(frame.loc[0, 'Total'], '45min')


class TestCommandLine(unittest.TestCase):
    """End to end runs of the record-hours command"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'hours.log.json')

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            status = record_hours.main(['--file', self.path, *argv])
        return status, out.getvalue(), err.getvalue()

    def punch(self, hour, minute=0, project='acme'):
        with mock.patch('record_hours.current_moment', return_value=at(hour, minute)):
            return self.run_cli('record', '--project', project)

    def test_record_and_show(self):
        """Punches recorded over a day are reported as intervals"""
        for hour, minute in [(9, 0), (12, 0), (12, 5), (13, 0)]:
            self.assertEqual(self.punch(hour, minute)[0], 0)

        status, out, _ = self.run_cli('show', '--project', 'acme')
        self.assertEqual(status, 0)
        self.assertEqual(out, "2024-03-01 (3h5min):\n  - 09:00 - 12:05\n  - 13:00 - \n")

        status, out, _ = self.run_cli('show', '-p', 'acme', '--decimal')
        self.assertEqual(out.splitlines()[0], "2024-03-01 (3.08):")

        status, out, _ = self.run_cli('show', '-p', 'acme', '--format', '%d: %h:%m')
        self.assertEqual(out, "2024-03-01: 3:185\n")

    def test_default_project(self):
        self.punch(9, project='')
        with open(self.path) as f:
            self.assertIn('', json.load(f))

    def test_show_unknown_project(self):
        self.punch(9)
        status, out, err = self.run_cli('show', '--project', 'nope')
        self.assertEqual(status, 1)
        self.assertEqual(out, '')
        self.assertIn('nope', err)

    def test_malformed_log_is_left_alone(self):
        """A broken snapshot aborts recording without touching the file"""
        with open(self.path, 'w') as f:
            f.write('{not json')
        status, _, err = self.punch(9)
        self.assertEqual(status, 1)
        self.assertIn('Log File Error', err)
        with open(self.path) as f:
            self.assertEqual(f.read(), '{not json')

    def test_log_not_utf8(self):
        with open(self.path, 'wb') as f:
            f.write(b'{"acme": \xff\xfe}')
        status, out, err = self.run_cli('show', '-p', 'acme')
        self.assertEqual(status, 1)
        self.assertEqual(out, '')
        self.assertIn('Log File Error', err)

    def test_huge_tolerance_is_rejected(self):
        """An out of range tolerance is reported instead of recording"""
        with open(self.path, 'w') as f:
            json.dump({'acme': {'2024-03-01': [
                {'type': 'Start', 'time': '09:00', 'tolerance': 900},
                {'type': 'End', 'time': '10:00', 'tolerance': 100000000000000},
            ]}}, f)
        status, _, err = self.punch(11)
        self.assertEqual(status, 1)
        self.assertIn('tolerance', err)

    def test_bad_template(self):
        self.punch(9)
        status, out, err = self.run_cli('show', '-p', 'acme', '--format', '%k')
        self.assertEqual(status, 1)
        self.assertEqual(out, '')
        self.assertIn('Format Error', err)

    def test_export(self):
        self.punch(9)
        self.punch(10)
        target = os.path.join(self.tmp.name, 'out.xlsx')
        status, _, _ = self.run_cli('export', '-p', 'acme', '-o', target)
        self.assertEqual(status, 0)
        ws = openpyxl.load_workbook(target)['Hours']
        self.assertEqual(ws['G2'].value, 60)


if __name__ == '__main__':
    unittest.main(verbosity=2)
