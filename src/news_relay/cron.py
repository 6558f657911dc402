# ABOUTME: Standard five-field crontab parsing on top of APScheduler's CronTrigger.
# ABOUTME: Translates cron day-of-week numbers (0 or 7 = Sunday) to APScheduler's Monday-based days.

from datetime import tzinfo

from apscheduler.triggers.cron import CronTrigger

CRON_DAY_MAX = 7


def _cron_day_to_apscheduler(day: int) -> int:
    # cron: 0/7=sun, 1=mon .. 6=sat; APScheduler: 0=mon .. 6=sun
    return (day - 1) % 7


def _expand_numeric_part(part: str) -> list[int]:
    """Expand one numeric day-of-week element (``3``, ``1-5``, ``*/2``, ``2/3``) to cron days."""
    span, _, step_text = part.partition("/")
    step = int(step_text) if step_text else 1
    if step < 1:
        raise ValueError(f"invalid step in day-of-week {part!r}")

    if span == "*":
        start, end = 0, 6
    elif "-" in span:
        first, last = span.split("-", 1)
        start, end = int(first), int(last)
    else:
        start = int(span)
        end = CRON_DAY_MAX if step_text else start

    if not (0 <= start <= CRON_DAY_MAX and 0 <= end <= CRON_DAY_MAX) or start > end:
        raise ValueError(f"invalid day-of-week {part!r}")
    return list(range(start, end + 1, step))


def convert_day_of_week(field: str) -> str:
    """Rewrite a crontab day-of-week field in APScheduler's numbering.

    Named days (``mon-fri``) and ``*`` already mean the same thing in both and
    are passed through.
    """
    if field == "*":
        return field

    named: list[str] = []
    days: set[int] = set()
    for part in field.split(","):
        if any(char.isalpha() for char in part):
            named.append(part)
            continue
        try:
            cron_days = _expand_numeric_part(part)
        except ValueError as e:
            raise ValueError(f"invalid day-of-week {part!r}") from e
        days.update(_cron_day_to_apscheduler(day) for day in cron_days)

    return ",".join(named + [str(day) for day in sorted(days)])


def cron_trigger(expression: str, timezone: tzinfo | str | None = None) -> CronTrigger:
    """Build a CronTrigger from a standard ``min hour day month day-of-week`` expression.

    Raises:
        ValueError: If the expression is not a valid five-field crontab.
    """
    values = expression.split()
    if len(values) != 5:
        raise ValueError(f"wrong number of fields; got {len(values)}, expected 5")

    return CronTrigger(
        minute=values[0],
        hour=values[1],
        day=values[2],
        month=values[3],
        day_of_week=convert_day_of_week(values[4]),
        timezone=timezone,
    )
