"""Practitioner resource construction and update rules.

A Practitioner is built once from an HR employee record plus locally supplied
data (status, license identifiers, qualifications). Later updates are partial:

- license identifiers are *merged* by system, never removed
- qualifications are *replaced* wholesale when supplied

Both rules are exposed as named functions so callers never rely on implicit
dict merging.
"""
from typing import List, Optional, Union

from shared.fhir.models import (
    CodeableConcept,
    Coding,
    ContactPoint,
    EmployeeRecord,
    HumanName,
    Identifier,
    Practitioner,
    PractitionerData,
    PractitionerUpdate,
    Qualification,
    QualificationInput,
    Reference,
)

EMPLOYEE_ID_SYSTEM = "http://hoitokoti.fi/employee-id"
VALVIRA_SYSTEM = "http://valvira.fi/license"
TERHIKKI_SYSTEM = "http://terhikki.fi/professional-id"
DEFAULT_QUALIFICATION_SYSTEM = "http://terminology.hl7.org/CodeSystem/v2-0360"

KNOWN_IDENTIFIER_SYSTEMS = (EMPLOYEE_ID_SYSTEM, VALVIRA_SYSTEM, TERHIKKI_SYSTEM)


def staff_id_for(employee_id: Union[int, str]) -> str:
    """Local staff id: ``S`` followed by the employee id padded to 4 digits."""
    return f"S{str(employee_id).zfill(4)}"


def map_qualification(qual: QualificationInput) -> Qualification:
    """Map one input qualification to its FHIR shape.

    Missing input fields stay unset and are left out when serialized.
    """
    return Qualification(
        identifier=[Identifier(value=qual.identifier)] if qual.identifier else [],
        code=CodeableConcept(
            coding=[Coding(
                system=qual.system or DEFAULT_QUALIFICATION_SYSTEM,
                code=qual.code,
                display=qual.display,
            )],
            text=qual.display,
        ),
        period=qual.period.model_copy() if qual.period else None,
        issuer=Reference(display=qual.issuer) if qual.issuer else None,
    )


def map_qualifications(qualifications: List[QualificationInput]) -> List[Qualification]:
    return [map_qualification(q) for q in qualifications]


def build_practitioner(employee: EmployeeRecord, data: PractitionerData) -> Practitioner:
    """Create a new Practitioner resource from an HR employee and local data."""
    practitioner = Practitioner(
        id=data.id,
        identifier=[Identifier(system=EMPLOYEE_ID_SYSTEM, value=str(employee.employeeId))],
        active=data.status == "active",
        name=[HumanName(use="official", family=employee.lastName, given=[employee.firstName])],
        telecom=[
            ContactPoint(system="phone", value=employee.phoneNumber, use="work"),
            ContactPoint(system="email", value=employee.email, use="work"),
        ],
        qualification=[],
    )

    if data.valvira_id:
        practitioner.identifier.append(Identifier(system=VALVIRA_SYSTEM, value=data.valvira_id))

    if data.terhikki_id:
        practitioner.identifier.append(Identifier(system=TERHIKKI_SYSTEM, value=data.terhikki_id))

    if data.qualifications is not None:
        practitioner.qualification = map_qualifications(data.qualifications)

    return practitioner


def merge_identifier(resource: Practitioner, system: str, value: str) -> Identifier:
    """Set the value for ``system`` in place, appending an entry if none exists.

    The position of an existing entry is preserved. Returns the entry that
    now holds the value.
    """
    for identifier in resource.identifier:
        if identifier.system == system:
            identifier.value = value
            return identifier

    identifier = Identifier(system=system, value=value)
    resource.identifier.append(identifier)
    return identifier


def replace_qualifications(resource: Practitioner, qualifications: List[QualificationInput]):
    """Replace the whole qualification list; prior entries are discarded."""
    resource.qualification = map_qualifications(qualifications)


def apply_practitioner_update(resource: Practitioner, update: PractitionerUpdate) -> Practitioner:
    """Apply a partial staff update to ``resource`` and return it.

    License identifiers merge, qualifications replace. ``id``, ``name`` and
    ``telecom`` are never touched.
    """
    if update.valvira_id:
        merge_identifier(resource, VALVIRA_SYSTEM, update.valvira_id)

    if update.terhikki_id:
        merge_identifier(resource, TERHIKKI_SYSTEM, update.terhikki_id)

    if update.qualifications is not None:
        replace_qualifications(resource, update.qualifications)

    return resource


def set_practitioner_status(resource: Practitioner, status: str) -> Practitioner:
    resource.active = status == "active"
    return resource


def load_practitioner(data: Optional[dict]) -> Practitioner:
    """Parse a stored Practitioner blob; an empty blob yields an empty resource."""
    return Practitioner.model_validate(data or {})


def practitioner_to_json(resource: Practitioner) -> dict:
    """Serialize with unset optional fields left out rather than null."""
    return resource.model_dump(mode="json", exclude_none=True)


def matches_identifier_token(resource: dict, token: str) -> bool:
    """Match a FHIR token search value (``system|value`` or ``value``)."""
    if "|" in token:
        system, value = token.split("|", 1)
    else:
        system, value = None, token

    for identifier in resource.get("identifier", []):
        if identifier.get("value") != value:
            continue
        if system is None or identifier.get("system") == system:
            return True
    return False
