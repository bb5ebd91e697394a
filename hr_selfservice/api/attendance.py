from __future__ import annotations

import json
import logging
from datetime import datetime, time
from typing import TYPE_CHECKING

from hr_selfservice.models.enums import AttendanceType
from hr_selfservice.schemas.attendance import LOG_TIME_FORMAT, Punch, PunchPayload, PunchReceipt

if TYPE_CHECKING:
    from datetime import date

    from hr_selfservice.api.client import AuthenticatedClient

logger = logging.getLogger(__name__)

DEVICE_ID = "PHONE-01"


def next_punch_type(punches: list[Punch]) -> AttendanceType:
    """Check in when there is no punch yet or the latest one was a check-out."""
    if not punches:
        return AttendanceType.CHECK_IN
    latest = max(punches, key=lambda p: p.log_time)
    return AttendanceType.CHECK_IN if latest.type == AttendanceType.CHECK_OUT else AttendanceType.CHECK_OUT


class AttendanceApi:
    """GPS punches under /attendances."""

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def list_punches(self, employee_code: str, on: date | None = None) -> list[Punch]:
        """Punches of one employee, newest first; limited to a single day when ``on`` is set."""
        params = {"employee_code": employee_code}
        if on is not None:
            params["from"] = datetime.combine(on, time.min).strftime(LOG_TIME_FORMAT)
            params["to"] = datetime.combine(on, time(23, 59, 59)).strftime(LOG_TIME_FORMAT)
        response = await self.client.get("/attendances", params=params)
        punches = self.client.decode_list(response, Punch)
        return sorted(punches, key=lambda p: p.log_time, reverse=True)

    async def punch(
        self,
        employee_code: str,
        latitude: float,
        longitude: float,
        punch_type: AttendanceType | None = None,
        at: datetime | None = None,
    ) -> PunchReceipt:
        """Record a punch at the given position.

        Without an explicit type, today's punches decide between check-in
        and check-out. A response without an id is an invalid response.
        """
        at = at or datetime.now()
        if punch_type is None:
            punch_type = next_punch_type(await self.list_punches(employee_code, at.date()))
        payload = PunchPayload(
            employee_code=employee_code,
            device_stgid=DEVICE_ID,
            log_time=at.strftime(LOG_TIME_FORMAT),
            type=punch_type,
            raw_payload=json.dumps({"latitude": latitude, "longitude": longitude}),
        )
        response = await self.client.post("/attendances", json=payload.model_dump(mode="json"))
        receipt = self.client.decode(response, PunchReceipt)
        logger.info("Recorded %s for %s (#%s)", punch_type.value, employee_code, receipt.id)
        return receipt
