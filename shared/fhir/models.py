"""FHIR R4 Resource Models"""
from typing import Optional, List, Union
from pydantic import BaseModel, ConfigDict


# ============ Base Types ============

class Coding(BaseModel):
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(BaseModel):
    coding: List[Coding] = []
    text: Optional[str] = None


class Identifier(BaseModel):
    use: Optional[str] = None
    system: Optional[str] = None
    value: Optional[str] = None


class Reference(BaseModel):
    reference: Optional[str] = None
    display: Optional[str] = None


class HumanName(BaseModel):
    use: Optional[str] = None
    family: Optional[str] = None
    given: List[str] = []


class ContactPoint(BaseModel):
    system: Optional[str] = None  # phone, email
    value: Optional[str] = None
    use: Optional[str] = None  # home, work, mobile


class Period(BaseModel):
    # Dates are kept as the caller sent them
    start: Optional[str] = None
    end: Optional[str] = None


class Meta(BaseModel):
    versionId: Optional[str] = None
    lastUpdated: Optional[str] = None


# ============ Resources ============

class FHIRResource(BaseModel):
    model_config = ConfigDict(extra="allow")

    resourceType: str
    id: Optional[str] = None
    meta: Optional[Meta] = None
    identifier: List[Identifier] = []


class Qualification(BaseModel):
    identifier: List[Identifier] = []
    code: CodeableConcept
    period: Optional[Period] = None
    issuer: Optional[Reference] = None


class Practitioner(FHIRResource):
    resourceType: str = "Practitioner"
    active: bool = True
    name: List[HumanName] = []
    telecom: List[ContactPoint] = []
    qualification: List[Qualification] = []


# ============ Upstream / request inputs ============

class EmployeeRecord(BaseModel):
    """Employee as returned by the HR system."""
    model_config = ConfigDict(extra="ignore")

    employeeId: Union[int, str]
    firstName: str
    lastName: str
    phoneNumber: Optional[str] = None
    email: Optional[str] = None
    hireDate: Optional[str] = None


class QualificationInput(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    identifier: Optional[str] = None
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None
    period: Optional[Period] = None
    issuer: Optional[str] = None


class PractitionerData(BaseModel):
    """Locally supplied data used when building a Practitioner."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    status: str = "active"
    valvira_id: Optional[str] = None
    terhikki_id: Optional[str] = None
    qualifications: Optional[List[QualificationInput]] = None


class PractitionerUpdate(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    role: Optional[str] = None
    department: Optional[str] = None
    valvira_id: Optional[str] = None
    terhikki_id: Optional[str] = None
    qualifications: Optional[List[QualificationInput]] = None


# ============ OperationOutcome ============

class OperationOutcomeIssue(BaseModel):
    severity: str = "error"
    code: str  # invalid, not-found, conflict, exception
    diagnostics: Optional[str] = None


class OperationOutcome(BaseModel):
    resourceType: str = "OperationOutcome"
    issue: List[OperationOutcomeIssue] = []
