from datetime import datetime

FRESH_DAYS = 30.0
STALE_DAYS = 365.0
DECAY_FLOOR = 0.5


# age in days; entries dated in the future count as fresh
def _age_days(ts: datetime, now: datetime) -> float:
    return max(0.0, (now - ts).total_seconds() / 86400.0)


# flat for the first month, linear down to the floor at one year
def decay_for_age(age_days: float) -> float:
    if age_days <= FRESH_DAYS:
        return 1.0
    if age_days >= STALE_DAYS:
        return DECAY_FLOOR
    frac = (age_days - FRESH_DAYS) / (STALE_DAYS - FRESH_DAYS)
    return 1.0 - (1.0 - DECAY_FLOOR) * frac


def time_decay(ts: datetime, now: datetime) -> float:
    return decay_for_age(_age_days(ts, now))
