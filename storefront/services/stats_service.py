"""
Sales summary for the admin console.
Paid-order counts and revenue for a selected day, the week and month it falls
in, and the seven days ending on it. All boundaries are UTC midnights.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Any, Optional

from storefront.exceptions import ValidationError
from storefront.models import Order, PaymentStatus
from storefront.utils.dates import utcnow, as_utc

logger = logging.getLogger(__name__)

LAST_DAYS = 7


def parse_summary_date(raw: Optional[str]) -> date:
    """
    Parse the `date` query value (YYYY-MM-DD); today (UTC) when blank.

    Raises:
        ValidationError: INVALID_DATE for anything else
    """
    text = (raw or '').strip()
    if not text:
        return utcnow().date()
    try:
        if len(text) != 10:
            raise ValueError(text)
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError("Use date in YYYY-MM-DD format.", code='INVALID_DATE')


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _bucket(**fields) -> Dict[str, Any]:
    return dict(fields, ordersCount=0, revenueCents=0)


def _add(bucket, total_cents):
    bucket['ordersCount'] += 1
    bucket['revenueCents'] += int(total_cents or 0)


def sales_summary(session, selected: date) -> Dict[str, Any]:
    """
    Aggregate paid orders around `selected`.

    Week to date starts on the Monday of the selected day's week; month to
    date starts on the first of its month. Both end with the selected day.

    Returns:
        dict with today, weekToDate, monthToDate, last7Days and weekStartsOn
    """
    day_start = _midnight(selected)
    day_end = day_start + timedelta(days=1)
    week_start = day_start - timedelta(days=selected.weekday())
    month_start = _midnight(selected.replace(day=1))
    last_start = day_start - timedelta(days=LAST_DAYS - 1)

    query_start = min(week_start, month_start, last_start)

    rows = (
        session.query(Order.created_at, Order.total_cents)
        .filter(
            Order.payment_status == PaymentStatus.PAID.value,
            Order.created_at >= query_start,
            Order.created_at < day_end,
        )
        .all()
    )

    today = _bucket(date=selected.isoformat())
    week_to_date = _bucket()
    month_to_date = _bucket()
    last_days = [
        _bucket(date=(selected - timedelta(days=offset)).isoformat())
        for offset in range(LAST_DAYS - 1, -1, -1)
    ]
    by_date = {bucket['date']: bucket for bucket in last_days}

    for created_at, total_cents in rows:
        created_at = as_utc(created_at)
        if created_at is None:
            continue
        if created_at >= day_end:
            continue
        if created_at >= month_start:
            _add(month_to_date, total_cents)
        if created_at >= day_start:
            _add(today, total_cents)
        if created_at >= week_start:
            _add(week_to_date, total_cents)
        if created_at >= last_start:
            _add(by_date[created_at.date().isoformat()], total_cents)

    logger.info(f"[STATS] Summary for {selected.isoformat()}: {len(rows)} paid orders in range")
    return {
        'today': today,
        'weekToDate': week_to_date,
        'monthToDate': month_to_date,
        'last7Days': last_days,
        'weekStartsOn': 'monday',
    }
