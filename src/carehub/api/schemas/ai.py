"""
Pydantic schemas for automated symptom analysis.
"""

from typing import List, Literal, Optional

from pydantic import Field

from ...domain.enums import Gender, SymptomSeverity, UrgencyLevel
from .common import CamelModel


class ReportedSymptom(CamelModel):
    name: str = Field(..., min_length=1, description="Symptom name (English or Spanish)")
    severity: SymptomSeverity
    duration: str = Field(..., min_length=1, description="Free text, e.g. '3 days'")
    description: Optional[str] = None
    body_part: Optional[str] = None


class VitalSigns(CamelModel):
    temperature: Optional[float] = None
    blood_pressure: Optional[str] = None
    heart_rate: Optional[float] = None
    respiratory_rate: Optional[float] = None


class PatientInfo(CamelModel):
    age: int = Field(..., ge=0, le=150)
    gender: Gender
    medical_history: List[str] = Field(default_factory=list)
    current_medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    vital_signs: Optional[VitalSigns] = None


class SymptomAnalysisRequest(CamelModel):
    """Request schema for POST /ai/analyze-symptoms."""

    patient_id: str = Field(..., min_length=1)
    symptoms: List[ReportedSymptom] = Field(..., min_length=1)
    patient_info: PatientInfo
    urgency_level: UrgencyLevel = UrgencyLevel.ROUTINE
    include_recommendations: bool = True
    language: Literal["es", "en"] = "en"


class Medication(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    route: Optional[str] = None


class InteractionPatientInfo(CamelModel):
    age: int = Field(..., ge=0, le=150)
    weight: Optional[float] = Field(None, gt=0)
    conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    kidney_function: Literal["normal", "mild", "moderate", "severe"] = "normal"
    liver_function: Literal["normal", "mild", "moderate", "severe"] = "normal"


class DrugInteractionRequest(CamelModel):
    """Request schema for POST /ai/drug-interactions."""

    patient_id: str = Field(..., min_length=1)
    medications: List[Medication] = Field(..., min_length=1)
    new_medication: Optional[Medication] = None
    patient_info: InteractionPatientInfo
    include_contraindications: bool = True
    include_dosage_adjustments: bool = True
    language: Literal["es", "en"] = "en"
