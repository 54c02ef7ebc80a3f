import logging
import os

# Snapshot location
DEFAULT_LOG_FILE = os.environ.get('RECORD_HOURS_FILE', 'hours.log.json')

# Punch rules
DEFAULT_TOLERANCE_SECONDS = 15 * 60  # window in which a later punch slides the last End forward

# Logging
LOG_LEVEL = getattr(logging, os.environ.get('RECORD_HOURS_LOG', 'WARNING').upper(), logging.WARNING)
LOG_FORMAT = '%(levelname)s %(name)s: %(message)s'

# Workbook layout: header -> column width
EXPORT_COLUMNS = {
    'Project': 20,
    'Date': 12,
    'First Start': 12,
    'Last End': 12,
    'Intervals': 10,
    'Open Since': 12,
    'Total Minutes': 14,
    'Total Hours': 12,
    'Total': 12,
}
