# compensation/services/monthly_stats.py
"""
Per (user, month) accumulators: bulk upsert, single increment and retention.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Tuple
from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
import logging

from models import UserMonthlyCheckStats, MONTHLY_STAT_FIELDS
from compensation.errors import ValidationError

logger = logging.getLogger(__name__)

MonthlyKey = Tuple[int, date]

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def addDelta(deltas: Dict[MonthlyKey, Dict[str, Decimal]], userId: int, month: date, **values):
    """Accumulate values into the in-memory delta for (userId, month)."""
    for name in values:
        if name not in MONTHLY_STAT_FIELDS:
            raise ValidationError(f"Unknown monthly stat field '{name}'")

    entry = deltas.setdefault((userId, month), {})
    for name, value in values.items():
        if value:
            entry[name] = entry.get(name, 0) + value


def upsertMonthlyDeltas(session: Session, deltas: Dict[MonthlyKey, Dict[str, Decimal]]) -> int:
    """
    Write accumulated deltas, one row per (user, month).
    Existing rows are incremented, never overwritten.
    """
    rows = []
    now = datetime.now(timezone.utc)
    for (userId, month), values in deltas.items():
        if not any(values.values()):
            continue
        row = {"userID": userId, "month": month, "createdAt": now, "updatedAt": now}
        for name in MONTHLY_STAT_FIELDS:
            row[name] = values.get(name, 0)
        rows.append(row)

    if not rows:
        return 0

    dialectInsert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
    if dialectInsert is None:
        for row in rows:
            _incrementRow(session, row)
        session.flush()
        return len(rows)

    table = UserMonthlyCheckStats.__table__
    stmt = dialectInsert(table).values(rows)
    updates = {name: table.c[name] + stmt.excluded[name] for name in MONTHLY_STAT_FIELDS}
    updates["updatedAt"] = stmt.excluded.updatedAt
    stmt = stmt.on_conflict_do_update(index_elements=["userID", "month"], set_=updates)
    session.execute(stmt)
    _expireLoaded(session)

    return len(rows)


def incrementMonthlyStat(session: Session, userId: int, month: date, **values) -> int:
    """Increment a single user's counters for a month."""
    deltas = {}
    addDelta(deltas, userId, month, **values)
    return upsertMonthlyDeltas(session, deltas)


def deleteMonthlyStatsBefore(session: Session, cutoff: date) -> int:
    result = session.execute(
        delete(UserMonthlyCheckStats)
        .where(UserMonthlyCheckStats.month < cutoff)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _expireLoaded(session: Session):
    # строки изменены в обход ORM
    for obj in list(session.identity_map.values()):
        if isinstance(obj, UserMonthlyCheckStats):
            session.expire(obj)


def _incrementRow(session: Session, row: Dict):
    existing = session.query(UserMonthlyCheckStats).filter_by(
        userID=row["userID"], month=row["month"]
    ).with_for_update().first()

    if existing is None:
        session.add(UserMonthlyCheckStats(**row))
        return

    for name in MONTHLY_STAT_FIELDS:
        setattr(existing, name, (getattr(existing, name) or 0) + row[name])
