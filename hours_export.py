import logging

import openpyxl
import pandas as pd
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from duration_format import human_duration, whole_minutes
from hours_config import EXPORT_COLUMNS
from hours_log import format_clock
from hours_report import project_days

logger = logging.getLogger(__name__)

HOURS_COLUMNS = ['Total Hours']
COUNT_COLUMNS = ['Intervals', 'Total Minutes']


def minutes_to_decimal_hours(minutes):
    """Convert minutes to decimal hours"""
    return round(minutes / 60, 2)


def summary_frame(log, projects=None):
    """
    Build a table with one row per (project, day) that has work recorded.
    projects: names to include; all projects in the log when None.
    """
    if projects is None:
        projects = sorted(log)

    rows = []
    for project in projects:
        for day, intervals in project_days(log, project):
            minutes = whole_minutes(intervals.total)
            closed = intervals.intervals
            rows.append({
                'Project': project,
                'Date': day.isoformat(),
                'First Start': format_clock(closed[0].start) if closed else '',
                'Last End': format_clock(closed[-1].end) if closed else '',
                'Intervals': len(closed),
                'Open Since': format_clock(intervals.trailing_open) if intervals.trailing_open is not None else '',
                'Total Minutes': minutes,
                'Total Hours': minutes_to_decimal_hours(minutes),
                'Total': human_duration(intervals.total),
            })

    frame = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    if not frame.empty:
        frame = frame.sort_values(['Project', 'Date'], kind='stable').reset_index(drop=True)
    return frame


def write_workbook(frame, output_filepath):
    """Generate Excel file with the hours summary"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Hours"

    # Define styles
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    data_alignment = Alignment(horizontal="left", vertical="center")
    center_alignment = Alignment(horizontal="center", vertical="center")

    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    headers = list(frame.columns)

    # Write headers
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col)
        cell.value = header
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = border
        ws.column_dimensions[get_column_letter(col)].width = EXPORT_COLUMNS.get(header, 12)

    # Write data
    for row, record in enumerate(frame.itertuples(index=False), 2):
        for col, (header, value) in enumerate(zip(headers, record), 1):
            cell = ws.cell(row=row, column=col)
            # numpy scalars -> plain python values
            cell.value = value.item() if hasattr(value, 'item') else value
            cell.border = border
            if header in HOURS_COLUMNS or header in COUNT_COLUMNS:
                cell.alignment = center_alignment
                if header in HOURS_COLUMNS:
                    cell.number_format = '0.00'
            else:
                cell.alignment = data_alignment

    # Freeze first row
    ws.freeze_panes = 'A2'

    wb.save(output_filepath)
    logger.info("Excel file generated: %s", output_filepath)


def export_summary(log, output_filepath, projects=None):
    """Write the summary as CSV or as a workbook depending on the file extension."""
    frame = summary_frame(log, projects)
    if str(output_filepath).lower().endswith('.csv'):
        frame.to_csv(output_filepath, index=False)
        logger.info("CSV file generated: %s", output_filepath)
    else:
        write_workbook(frame, output_filepath)
    return len(frame)
