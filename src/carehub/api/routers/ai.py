"""
Automated clinical decision support: symptom triage and medication screening.

Both endpoints run static rule tables (see ``carehub.domain``), persist the
analysis for audit and raise an alert document when the result is critical.
"""

import logging

from fastapi import APIRouter, status

from ...core.utils.datetime_utils import get_current_timestamp
from ...domain.drug_interactions import analyze_interactions
from ...domain.drug_interactions import texts as interaction_texts
from ...domain.symptom_analysis import analyze_symptoms
from ...domain.symptom_analysis import texts as symptom_texts
from ..deps import CurrentUser, DocumentStoreDep
from ..errors import PatientNotFoundError
from ..schemas.ai import DrugInteractionRequest, SymptomAnalysisRequest
from ..schemas.common import ApiResponse, error_responses
from ..utils.responses import ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

PATIENTS = "patients"
SYMPTOM_ANALYSES = "ai_symptom_analyses"
EMERGENCY_ALERTS = "emergency_alerts"
INTERACTION_ANALYSES = "ai_drug_interaction_analyses"
INTERACTION_ALERTS = "drug_interaction_alerts"


async def _ensure_patient(store, patient_id: str) -> None:
    if await store.get(PATIENTS, patient_id) is None:
        raise PatientNotFoundError(patient_id)


@router.post(
    "/analyze-symptoms",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse[dict],
    responses=error_responses(404),
    summary="Triage reported symptoms",
)
async def symptom_analysis(body: SymptomAnalysisRequest, caller: CurrentUser, store: DocumentStoreDep):
    """
    Score the reported symptoms against the knowledge table.

    The stored record keeps the raw symptoms next to the result. An
    ``emergency`` urgency also files an unresolved emergency alert for the
    patient.
    """
    await _ensure_patient(store, body.patient_id)

    symptoms = [s.model_dump(by_alias=True) for s in body.symptoms]
    analysis = analyze_symptoms(
        symptoms,
        body.patient_info.model_dump(by_alias=True),
        include_recommendations=body.include_recommendations,
        language=body.language,
    )
    text = symptom_texts(body.language)

    record = await store.add(
        SYMPTOM_ANALYSES,
        {
            "patientId": body.patient_id,
            "requestedBy": caller.uid,
            "symptoms": symptoms,
            "analysis": analysis,
            "timestamp": get_current_timestamp(),
            "language": body.language,
            "urgencyLevel": analysis["urgencyLevel"],
            "requestedUrgencyLevel": body.urgency_level,
        },
    )

    if analysis["urgencyLevel"] == "emergency":
        await store.add(
            EMERGENCY_ALERTS,
            {
                "patientId": body.patient_id,
                "analysisId": record["id"],
                "type": "ai_symptom_emergency",
                "urgency": "emergency",
                "message": text["alert"],
                "conditions": [c["name"] for c in analysis["possibleConditions"]],
                "resolved": False,
            },
        )
        logger.warning(f"Emergency symptom analysis {record['id']} for patient={body.patient_id}")

    return ok({"id": record["id"], **analysis, "disclaimer": text["disclaimer"]})


@router.post(
    "/drug-interactions",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse[dict],
    responses=error_responses(404),
    summary="Screen a medication list for interactions",
)
async def drug_interaction_analysis(body: DrugInteractionRequest, caller: CurrentUser, store: DocumentStoreDep):
    await _ensure_patient(store, body.patient_id)

    medications = [m.model_dump(by_alias=True) for m in body.medications]
    new_medication = body.new_medication.model_dump(by_alias=True) if body.new_medication else None
    analysis = analyze_interactions(
        medications,
        body.patient_info.model_dump(by_alias=True),
        new_medication=new_medication,
        include_contraindications=body.include_contraindications,
        include_dosage_adjustments=body.include_dosage_adjustments,
        language=body.language,
    )
    text = interaction_texts(body.language)

    record = await store.add(
        INTERACTION_ANALYSES,
        {
            "patientId": body.patient_id,
            "requestedBy": caller.uid,
            "medications": medications,
            "newMedication": new_medication,
            "analysis": analysis,
            "timestamp": get_current_timestamp(),
            "language": body.language,
            "riskLevel": analysis["riskAssessment"]["riskLevel"],
        },
    )

    if analysis["hasCriticalInteractions"]:
        await store.add(
            INTERACTION_ALERTS,
            {
                "patientId": body.patient_id,
                "analysisId": record["id"],
                "type": "critical_drug_interaction",
                "severity": "critical",
                "message": text["alert"],
                "interactions": [i for i in analysis["interactions"] if i["severity"] == "high"],
                "allergyWarnings": analysis["allergyWarnings"],
                "resolved": False,
            },
        )
        logger.warning(f"Critical drug interactions in analysis {record['id']} for patient={body.patient_id}")

    return ok({"id": record["id"], **analysis, "disclaimer": text["disclaimer"]})
