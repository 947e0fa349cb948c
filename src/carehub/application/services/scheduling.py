"""
Appointment scheduling: overlap detection and slot-key reservation.

A booking first looks for overlapping non-cancelled appointments, then claims one
``appointment_slots`` document per 5-minute block it covers. Slot documents are
created with the store's unique-id ``create``, so two concurrent bookings of the
same block cannot both succeed: the loser releases what it claimed and gets
TIME_CONFLICT.

A held slot is taken over only when its appointment was cancelled, or when no
appointment was ever written and the claim is older than
``CLAIM_GRACE_SECONDS``.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ...api.errors import TimeConflictError
from ...core.exceptions import DocumentExistsError
from ...core.utils.datetime_utils import ensure_utc, get_current_timestamp
from ..ports.document_store import DocumentStore, where

logger = logging.getLogger(__name__)

APPOINTMENTS = "appointments"
SLOTS = "appointment_slots"

SLOT_MINUTES = 5
MAX_DURATION_MINUTES = 240
DEFAULT_DURATION_MINUTES = 30
# An ownerless slot younger than this belongs to a booking still in flight
CLAIM_GRACE_SECONDS = 60


def appointment_end(start: datetime, duration: int) -> datetime:
    return ensure_utc(start) + timedelta(minutes=duration)


def overlaps(start_a: datetime, duration_a: int, start_b: datetime, duration_b: int) -> bool:
    """Half-open interval intersection: back-to-back appointments do not overlap."""
    return ensure_utc(start_a) < appointment_end(start_b, duration_b) and ensure_utc(
        start_b
    ) < appointment_end(start_a, duration_a)


def slot_keys(doctor_id: str, start: datetime, duration: int) -> List[str]:
    """Keys of every slot block touched by [start, start + duration)."""
    start = ensure_utc(start)
    end = appointment_end(start, duration)
    block = start.replace(
        minute=start.minute - start.minute % SLOT_MINUTES, second=0, microsecond=0
    )
    keys = []
    while block < end:
        keys.append(f"{doctor_id}:{block.strftime('%Y%m%dT%H%M')}")
        block += timedelta(minutes=SLOT_MINUTES)
    return keys


class AppointmentScheduler:
    """Conflict checks and slot claims for one document store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find_conflicts(
        self,
        doctor_id: str,
        start: datetime,
        duration: int,
        exclude_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        start = ensure_utc(start)
        candidates = await self.store.query(
            APPOINTMENTS,
            [
                where("doctorId", "==", doctor_id),
                where("status", "!=", "cancelled"),
                where("scheduledAt", "<", appointment_end(start, duration)),
                where("scheduledAt", ">", start - timedelta(minutes=MAX_DURATION_MINUTES)),
            ],
        )
        return [
            appointment
            for appointment in candidates
            if appointment["id"] != exclude_id
            and overlaps(
                start,
                duration,
                appointment["scheduledAt"],
                appointment.get("duration") or DEFAULT_DURATION_MINUTES,
            )
        ]

    async def ensure_available(
        self,
        doctor_id: str,
        start: datetime,
        duration: int,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflicts = await self.find_conflicts(doctor_id, start, duration, exclude_id)
        if conflicts:
            raise TimeConflictError([c["id"] for c in conflicts])

    async def _slot_is_stale(self, slot: Dict[str, Any], appointment_id: str) -> bool:
        owner_id = slot.get("appointmentId")
        if owner_id == appointment_id:
            return True
        owner = await self.store.get(APPOINTMENTS, owner_id) if owner_id else None
        if owner is not None:
            return owner.get("status") == "cancelled"
        claimed_at = slot.get("claimedAt")
        if claimed_at is None:
            return False
        age = get_current_timestamp() - ensure_utc(claimed_at)
        # Claimed by a booking that never completed
        return age > timedelta(seconds=CLAIM_GRACE_SECONDS)

    async def claim_slots(
        self, doctor_id: str, start: datetime, duration: int, appointment_id: str
    ) -> List[str]:
        """Claim every slot block for the appointment or raise TimeConflictError."""
        claimed: List[str] = []
        # Keys this call took, released again on conflict
        acquired: List[str] = []
        for key in slot_keys(doctor_id, start, duration):
            payload = {
                "doctorId": doctor_id,
                "appointmentId": appointment_id,
                "claimedAt": get_current_timestamp(),
            }
            try:
                await self.store.create(SLOTS, key, payload)
                acquired.append(key)
            except DocumentExistsError:
                existing = await self.store.get(SLOTS, key)
                if existing is not None and not await self._slot_is_stale(existing, appointment_id):
                    await self.store.delete_many(SLOTS, acquired)
                    logger.info(
                        f"Slot {key} already held by appointment {existing.get('appointmentId')}"
                    )
                    raise TimeConflictError([existing.get("appointmentId")])
                if existing is None or existing.get("appointmentId") != appointment_id:
                    await self.store.set(SLOTS, key, payload)
                    acquired.append(key)
            claimed.append(key)
        return claimed

    async def release_slots(
        self,
        doctor_id: str,
        start: datetime,
        duration: int,
        appointment_id: str,
        keep: Optional[List[str]] = None,
    ) -> int:
        """Drop the appointment's slot claims, except for keys in ``keep``."""
        keys = [k for k in slot_keys(doctor_id, start, duration) if k not in (keep or [])]
        held = await self.store.get_many(SLOTS, keys)
        owned = [key for key, slot in held.items() if slot.get("appointmentId") == appointment_id]
        return await self.store.delete_many(SLOTS, owned)

    async def book(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an appointment after the overlap check and slot claims succeed."""
        doctor_id = data["doctorId"]
        start = data["scheduledAt"]
        duration = data.get("duration") or DEFAULT_DURATION_MINUTES

        await self.ensure_available(doctor_id, start, duration)
        appointment_id = uuid.uuid4().hex
        claimed = await self.claim_slots(doctor_id, start, duration, appointment_id)
        try:
            return await self.store.create(APPOINTMENTS, appointment_id, data)
        except Exception:
            await self.store.delete_many(SLOTS, claimed)
            raise

    async def reschedule(
        self,
        appointment: Dict[str, Any],
        new_start: datetime,
        new_duration: int,
    ) -> None:
        """Move the appointment's claims to a new window (the document update is the caller's)."""
        doctor_id = appointment["doctorId"]
        await self.ensure_available(doctor_id, new_start, new_duration, exclude_id=appointment["id"])
        claimed = await self.claim_slots(doctor_id, new_start, new_duration, appointment["id"])
        await self.release_slots(
            doctor_id,
            appointment["scheduledAt"],
            appointment.get("duration") or DEFAULT_DURATION_MINUTES,
            appointment["id"],
            keep=claimed,
        )

    async def cancel(self, appointment: Dict[str, Any]) -> None:
        await self.release_slots(
            appointment["doctorId"],
            appointment["scheduledAt"],
            appointment.get("duration") or DEFAULT_DURATION_MINUTES,
            appointment["id"],
        )
