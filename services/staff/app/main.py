"""Staff Service - Care facility staff registry
Manages staff members onboarded from the HR system:
- Staff rows (role, department, status)
- FHIR Practitioner resource per staff member
  (license identifiers, qualifications)
HR-owned fields (name, phone, email, hire date) are read-only here.
"""
import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from shared.base_service import FHIRService, StaffRecord, create_fhir_app
from shared.fhir.models import EmployeeRecord, PractitionerData, PractitionerUpdate
from shared.fhir.practitioner import (
    apply_practitioner_update,
    build_practitioner,
    load_practitioner,
    matches_identifier_token,
    practitioner_to_json,
    set_practitioner_status,
    staff_id_for,
)
from services.staff.app.hr_client import HRClient

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SUPPORTED_RESOURCES = [
    "Practitioner",
]

STAFF_STATUSES = ("active", "inactive")


def _parse(model, payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"])
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {first['msg']}")


def _employee_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="employee_id must be an integer")


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


class StaffService(FHIRService):
    """Staff-specific service backed by the HR employee lookup"""

    def __init__(self, hr_client: Optional[HRClient] = None):
        super().__init__("staff", SUPPORTED_RESOURCES)
        self.hr_client = hr_client or HRClient()

    async def setup(self):
        await super().setup()
        self._seed_data()

    def _seed_path(self) -> Optional[Path]:
        configured = os.environ.get("STAFF_SEED_FILE")
        if configured:
            return Path(configured)
        for candidate in (Path("/app/data/seed/staff_seed.json"), Path("data/seed/staff_seed.json")):
            if candidate.exists():
                return candidate
        return None

    def _seed_data(self):
        """Load seed staff on startup"""
        seed_path = self._seed_path()
        if not seed_path or not seed_path.exists():
            return

        with open(seed_path) as f:
            seed_data = json.load(f)

        loaded = 0
        for entry in seed_data.get("staff", []):
            employee = EmployeeRecord.model_validate(entry["employee"])
            data = PractitionerData(
                id=staff_id_for(employee.employeeId),
                status=entry.get("status", "active"),
                valvira_id=entry.get("valvira_id"),
                terhikki_id=entry.get("terhikki_id"),
                qualifications=entry.get("qualifications"),
            )
            try:
                self._insert_staff(employee, entry["role"], entry["department"], data)
                loaded += 1
            except IntegrityError:
                logger.debug("Seed staff %s already present", data.id)
        logger.info("Staff seed data loaded (%d new)", loaded)

    def _insert_staff(self, employee: EmployeeRecord, role: str, department: str,
                      data: PractitionerData) -> StaffRecord:
        practitioner = build_practitioner(employee, data)
        record = StaffRecord(
            id=data.id,
            employee_id=int(employee.employeeId),
            first_name=employee.firstName,
            last_name=employee.lastName,
            role=role,
            department=department,
            email=employee.email,
            phone=employee.phoneNumber,
            hire_date=employee.hireDate,
            status=data.status,
            version_id="1",
            fhir_practitioner=practitioner_to_json(practitioner),
        )
        with self.Session() as session:
            session.add(record)
            session.commit()
        return record

    def _get_record(self, session, staff_id: str) -> StaffRecord:
        record = session.get(StaffRecord, staff_id)
        if not record:
            raise HTTPException(status_code=404, detail="Staff member not found")
        return record

    # ============ Staff registry ============

    def list_active_staff(self) -> List[dict]:
        with self.Session() as session:
            rows = session.query(StaffRecord).filter(
                StaffRecord.status == "active"
            ).order_by(StaffRecord.last_name, StaffRecord.first_name).all()
            return [r.to_dict() for r in rows]

    def get_staff(self, staff_id: str) -> dict:
        with self.Session() as session:
            return self._get_record(session, staff_id).to_dict()

    def get_staff_by_employee_id(self, employee_id: str) -> dict:
        if not employee_id.isdigit():
            raise HTTPException(status_code=404, detail="Staff member not found")
        with self.Session() as session:
            record = session.query(StaffRecord).filter(
                StaffRecord.employee_id == int(employee_id)
            ).first()
            if not record:
                raise HTTPException(status_code=404, detail="Staff member not found")
            return record.to_dict()

    async def create_staff(self, payload: Dict[str, Any]) -> dict:
        """Onboard an HR employee as a staff member with a new Practitioner"""
        if not all(payload.get(f) for f in ("employee_id", "role", "department")):
            raise HTTPException(status_code=400, detail="employee_id, role, and department are required")

        employee_id = _employee_id(payload["employee_id"])
        data = _parse(PractitionerData, {
            "id": staff_id_for(employee_id),
            "status": "active",
            "valvira_id": payload.get("valvira_id"),
            "terhikki_id": payload.get("terhikki_id"),
            "qualifications": payload.get("qualifications"),
        })

        with self.Session() as session:
            exists = session.query(StaffRecord.id).filter(
                StaffRecord.employee_id == employee_id
            ).first()
        if exists:
            raise HTTPException(status_code=409, detail="Staff member already exists")

        employee = await self.hr_client.fetch_employee(employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found in HR system")

        try:
            record = self._insert_staff(employee, payload["role"], payload["department"], data)
        except IntegrityError:
            raise HTTPException(status_code=409, detail="Staff member already exists")

        logger.info("Created staff %s for employee %s", record.id, employee_id)
        return record.to_dict()

    def update_staff(self, staff_id: str, payload: Dict[str, Any]) -> dict:
        """Update local staff data; HR-owned fields are never touched"""
        update = _parse(PractitionerUpdate, payload)

        with self.Session() as session:
            record = self._get_record(session, staff_id)

            practitioner = load_practitioner(record.fhir_practitioner)
            if not record.fhir_practitioner:
                set_practitioner_status(practitioner, record.status)
            apply_practitioner_update(practitioner, update)

            if update.role:
                record.role = update.role
            if update.department:
                record.department = update.department

            record.fhir_practitioner = practitioner_to_json(practitioner)
            record.version_id = str(int(record.version_id) + 1)
            session.commit()
            logger.info("Updated staff %s (version %s)", staff_id, record.version_id)
            return record.to_dict()

    def set_status(self, staff_id: str, status: Optional[str]) -> dict:
        """Activate or deactivate a staff member (soft delete)"""
        if status not in STAFF_STATUSES:
            raise HTTPException(status_code=400, detail="Valid status (active or inactive) is required")

        with self.Session() as session:
            record = self._get_record(session, staff_id)
            record.status = status
            if record.fhir_practitioner is not None:
                practitioner = set_practitioner_status(load_practitioner(record.fhir_practitioner), status)
                record.fhir_practitioner = practitioner_to_json(practitioner)
                record.version_id = str(int(record.version_id) + 1)
            session.commit()
            logger.info("Staff %s set to %s", staff_id, status)
            return record.to_dict()

    # ============ FHIR Practitioner ============

    def _practitioner_with_meta(self, record: StaffRecord) -> dict:
        resource = dict(record.fhir_practitioner or {})
        resource["resourceType"] = "Practitioner"
        resource["id"] = record.id
        resource["meta"] = {
            "versionId": record.version_id,
            "lastUpdated": (record.updated_at or record.created_at).isoformat() + "Z"
        }
        return resource

    def read_practitioner(self, staff_id: str) -> dict:
        with self.Session() as session:
            record = session.get(StaffRecord, staff_id)
            if not record or record.fhir_practitioner is None:
                raise HTTPException(status_code=404, detail=f"Practitioner/{staff_id} not found")
            return self._practitioner_with_meta(record)

    def search_practitioners(self, params: Dict[str, Any], limit: int = 100, offset: int = 0) -> dict:
        """Search Practitioners by _id, active and identifier"""
        with self.Session() as session:
            query = session.query(StaffRecord).filter(StaffRecord.fhir_practitioner.isnot(None))

            if params.get("_id"):
                query = query.filter(StaffRecord.id == params["_id"])
            if params.get("active") in ("true", "false"):
                query = query.filter(
                    StaffRecord.status == ("active" if params["active"] == "true" else "inactive")
                )

            rows = query.order_by(StaffRecord.id).all()
            resources = [self._practitioner_with_meta(r) for r in rows]

        token = params.get("identifier")
        if token:
            resources = [r for r in resources if matches_identifier_token(r, token)]

        page = resources[offset:offset + limit]
        return {
            "resourceType": "Bundle",
            "type": "searchset",
            "total": len(resources),
            "link": [
                {"relation": "self", "url": "/fhir/r4/Practitioner"}
            ],
            "entry": [
                {"fullUrl": f"Practitioner/{r['id']}", "resource": r}
                for r in page
            ]
        }


service = StaffService()
app = create_fhir_app(service)


# ===================
# Staff REST API
# ===================

@app.get("/api/staff")
async def get_all_staff():
    staff = service.list_active_staff()
    return {"success": True, "count": len(staff), "data": staff}


@app.post("/api/staff")
async def create_staff(request: Request):
    payload = await _read_json(request)
    created = await service.create_staff(payload)
    await service.publish_event("created", created["fhir_practitioner"])
    return JSONResponse(content={"success": True, "data": created}, status_code=201)


@app.get("/api/staff/by-employee/{employee_id}")
async def get_staff_by_employee_id(employee_id: str):
    return {"success": True, "data": service.get_staff_by_employee_id(employee_id)}


@app.get("/api/staff/{staff_id}")
async def get_staff_by_id(staff_id: str):
    return {"success": True, "data": service.get_staff(staff_id)}


@app.put("/api/staff/{staff_id}")
async def update_staff(staff_id: str, request: Request):
    payload = await _read_json(request)
    updated = service.update_staff(staff_id, payload)
    await service.publish_event("updated", updated["fhir_practitioner"])
    return {"success": True, "data": updated}


@app.patch("/api/staff/{staff_id}/status")
async def update_staff_status(staff_id: str, request: Request):
    payload = await _read_json(request)
    status = payload.get("status")
    updated = service.set_status(staff_id, status)
    if updated["fhir_practitioner"]:
        await service.publish_event("updated", updated["fhir_practitioner"])
    verb = "activated" if status == "active" else "deactivated"
    return {"success": True, "message": f"Staff member {verb} successfully"}


# ===================
# FHIR Practitioner
# ===================

@app.get("/fhir/r4/Practitioner/{practitioner_id}")
async def read_practitioner(practitioner_id: str):
    result = service.read_practitioner(practitioner_id)
    return JSONResponse(content=result, media_type="application/fhir+json")


@app.get("/fhir/r4/Practitioner")
async def search_practitioners(
    request: Request,
    _count: int = Query(100, alias="_count", ge=0),
    _offset: int = Query(0, alias="_offset", ge=0)
):
    params = dict(request.query_params)
    result = service.search_practitioners(params, limit=_count, offset=_offset)
    return JSONResponse(content=result, media_type="application/fhir+json")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))
