# backend/staff_availability/services/availability/loader.py
"""
Index hydration from the appointments store.

Read-only: the engine never writes the appointments table.
Runs once at startup; afterwards the index follows the appointment feed
(sync_appointment / apply_status_change).
"""

import json
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from .appointment import AppointmentInterval, AppointmentStatus
from .errors import AvailabilityError

logger = logging.getLogger(__name__)

OCCUPYING_STATUSES = [s.value for s in AppointmentStatus if s.occupies_resource]


def load_active_appointments(db: Session, index) -> int:
    """
    Upsert every occupying appointment from the store into index.

    Rows that cannot be parsed are skipped and logged.

    Returns:
        Number of appointments indexed.
    """
    from ...models.appointments import Appointments

    rows = (
        db.query(Appointments)
        .filter(Appointments.status.in_(OCCUPYING_STATUSES))
        .all()
    )

    loaded = 0
    for row in rows:
        try:
            appointment = _row_to_interval(row)
        except (AvailabilityError, ValueError, TypeError) as e:
            logger.warning(f"Skipping appointment {row.id}: {e}")
            continue
        index.upsert(appointment)
        loaded += 1

    logger.info(f"Index hydrated: {loaded} active appointments ({len(rows) - loaded} skipped)")
    return loaded


def _row_to_interval(row) -> AppointmentInterval:
    if isinstance(row.date_start, str):
        start = datetime.fromisoformat(row.date_start)
    else:
        start = row.date_start

    if isinstance(row.date_end, str):
        end = datetime.fromisoformat(row.date_end)
    else:
        end = row.date_end

    try:
        participants = json.loads(row.participant_ids) if row.participant_ids else []
    except json.JSONDecodeError:
        participants = []

    return AppointmentInterval(
        id=str(row.id),
        staff_id=str(row.staff_id),
        location_id=row.location_id,
        start=start,
        end=end,
        status=AppointmentStatus(row.status),
        participant_ids=tuple(str(p) for p in participants),
    )
