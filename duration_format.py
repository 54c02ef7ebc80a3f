"""
Rendering of time spans and of per-day summary templates.

Template directives:
    %%  literal %
    %d  date as YYYY-MM-DD
    %Y  4-digit year
    %M  2-digit month
    %D  2-digit day
    %t  duration in decimal hours (1.50)
    %h  whole hours of the duration
    %m  whole minutes of the duration (hours included)
    %P  project name
"""
from datetime import date, timedelta

_MICROSECOND = timedelta(microseconds=1)


class TemplateError(ValueError):
    """A template contains an unknown directive."""


def _trunc_div(value, divisor):
    """Integer division rounding toward zero."""
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


def whole_minutes(span):
    return _trunc_div(span // _MICROSECOND, 60_000_000)


def whole_hours(span):
    return _trunc_div(whole_minutes(span), 60)


def human_duration(span):
    """Render a timedelta as 1h30min, or 45min when under an hour."""
    minutes = whole_minutes(span)
    hours = _trunc_div(minutes, 60)
    text = f"{hours}h" if hours != 0 else ''
    return f"{text}{minutes - hours * 60}min"


def decimal_duration(span):
    """Render a timedelta as decimal hours with two digits: 90 minutes -> 1.50"""
    return f"{whole_minutes(span) / 60:.2f}"


def format_duration(span, decimal=False):
    return decimal_duration(span) if decimal else human_duration(span)


def expand_template(template, day, duration, project):
    """Substitute the % directives of template for one day's total."""
    directives = {
        '%': lambda: '%',
        'd': day.isoformat,
        'Y': lambda: f"{day.year:04d}",
        'M': lambda: f"{day.month:02d}",
        'D': lambda: f"{day.day:02d}",
        't': lambda: decimal_duration(duration),
        'h': lambda: str(whole_hours(duration)),
        'm': lambda: str(whole_minutes(duration)),
        'P': lambda: project,
    }

    out = []
    chars = iter(template)
    for ch in chars:
        if ch != '%':
            out.append(ch)
            continue

        directive = next(chars, None)
        if directive not in directives:
            if directive is None:
                raise TemplateError(f"Template ends with a lone '%': {template!r}")
            raise TemplateError(f"Unknown directive '%{directive}' in template {template!r}")
        out.append(directives[directive]())

    return ''.join(out)


def check_template(template):
    """Raise TemplateError if template would fail to expand."""
    expand_template(template, date.min, timedelta(), '')
