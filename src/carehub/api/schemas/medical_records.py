"""
Pydantic schemas for medical records.
"""

from typing import List, Optional

from pydantic import Field

from ...domain.enums import MedicalRecordType
from .common import CamelModel, DateRangeQuery, MedicationEntry


class Vitals(CamelModel):
    blood_pressure: Optional[str] = Field(None, description="e.g. 120/80")
    heart_rate: Optional[float] = Field(None, ge=0)
    temperature: Optional[float] = None
    weight: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


class LabResult(CamelModel):
    test: str = Field(..., min_length=1)
    result: str = Field(..., min_length=1)
    normal_range: Optional[str] = None


class CreateMedicalRecordRequest(CamelModel):
    """Request schema for creating a medical record."""

    patient_id: str = Field(..., min_length=1)
    doctor_id: str = Field(..., min_length=1)
    appointment_id: Optional[str] = None
    type: MedicalRecordType
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    diagnosis: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    treatments: List[str] = Field(default_factory=list)
    medications: List[MedicationEntry] = Field(default_factory=list)
    vitals: Optional[Vitals] = None
    lab_results: List[LabResult] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)
    is_confidential: bool = False


class UpdateMedicalRecordRequest(CamelModel):
    type: Optional[MedicalRecordType] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    diagnosis: Optional[List[str]] = None
    symptoms: Optional[List[str]] = None
    treatments: Optional[List[str]] = None
    medications: Optional[List[MedicationEntry]] = None
    vitals: Optional[Vitals] = None
    lab_results: Optional[List[LabResult]] = None
    attachments: Optional[List[str]] = None
    is_confidential: Optional[bool] = None


class MedicalRecordListQuery(DateRangeQuery):
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    type: Optional[MedicalRecordType] = None
    search: Optional[str] = None
