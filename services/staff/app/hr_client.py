"""Client for the HR system's employee lookup (served by staff-service)"""
import os
import logging
from typing import Optional, Union

import httpx

from shared.fhir.models import EmployeeRecord

logger = logging.getLogger(__name__)

STAFF_SERVICE_URL = os.environ.get("STAFF_SERVICE_URL", "http://localhost:6001")


class HRClient:
    """Looks up employees by id. A 404 from HR means the employee is unknown."""

    def __init__(self, base_url: str = STAFF_SERVICE_URL, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch_employee(self, employee_id: Union[int, str]) -> Optional[EmployeeRecord]:
        url = f"{self.base_url}/api/employee/{employee_id}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url)

        if response.status_code == 404:
            logger.info("Employee %s not found in HR", employee_id)
            return None

        response.raise_for_status()
        return EmployeeRecord.model_validate(response.json())
