"""
Rule-based medication interaction screening.

A small static formulary of known pairwise interactions, contraindications and
monitoring advice. Drug and allergy names are matched case-insensitively, in
English or Spanish.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

INTERACTION_POINTS = {"high": 3, "moderate": 2, "low": 1}
CONTRAINDICATION_POINTS = 4
ALLERGY_POINTS = 5
ELDERLY_AGE = 65
SENIOR_AGE = 75
SENIOR_POINTS = 2
MULTIMORBIDITY_CONDITIONS = 3
MULTIMORBIDITY_POINTS = 2
RISK_THRESHOLDS = ((10, "critical"), (5, "high"), (2, "moderate"))


@dataclass(frozen=True)
class Interaction:
    drug: str
    severity: str
    mechanism: str


@dataclass(frozen=True)
class DrugProfile:
    interactions: Tuple[Interaction, ...]
    contraindications: Tuple[str, ...]
    monitoring: Tuple[str, ...]


FORMULARY = {
    "warfarin": DrugProfile(
        interactions=(
            Interaction("aspirin", "high", "increased bleeding risk"),
            Interaction("amoxicillin", "moderate", "enhanced anticoagulation"),
            Interaction("paracetamol", "low", "minimal interaction"),
        ),
        contraindications=("bleeding disorder", "peptic ulcer"),
        monitoring=("INR levels", "bleeding signs"),
    ),
    "aspirin": DrugProfile(
        interactions=(
            Interaction("warfarin", "high", "increased bleeding risk"),
            Interaction("ibuprofen", "moderate", "increased GI toxicity"),
            Interaction("metformin", "low", "minimal interaction"),
        ),
        contraindications=("asthma", "peptic ulcer", "bleeding disorder"),
        monitoring=("GI symptoms", "bleeding"),
    ),
    "metformin": DrugProfile(
        interactions=(
            Interaction("furosemide", "moderate", "lactic acidosis risk"),
            Interaction("alcohol", "high", "lactic acidosis"),
            Interaction("insulin", "moderate", "hypoglycemia risk"),
        ),
        contraindications=("kidney disease", "liver disease", "heart failure"),
        monitoring=("kidney function", "lactic acid levels"),
    ),
    "enalapril": DrugProfile(
        interactions=(
            Interaction("potassium", "high", "hyperkalemia"),
            Interaction("ibuprofen", "moderate", "reduced antihypertensive effect"),
            Interaction("furosemide", "moderate", "hypotension"),
        ),
        contraindications=("angioedema", "pregnancy"),
        monitoring=("blood pressure", "kidney function", "potassium levels"),
    ),
}

DRUG_ALIASES = {
    "warfarina": "warfarin",
    "aspirina": "aspirin",
    "ácido acetilsalicílico": "aspirin",
    "acetylsalicylic acid": "aspirin",
    "amoxicilina": "amoxicillin",
    "metformina": "metformin",
    "furosemida": "furosemide",
    "insulina": "insulin",
    "potasio": "potassium",
    "ibuprofeno": "ibuprofen",
    "ampicilina": "ampicillin",
    "sulfametoxazol": "sulfamethoxazole",
    "penicilina": "penicillin",
    "penicilina g": "penicillin g",
}

ALLERGY_GROUPS = {
    "penicillin": ("amoxicillin", "ampicillin", "penicillin", "penicillin g"),
    "sulfa": ("sulfamethoxazole", "furosemide", "celecoxib"),
    "aspirin": ("aspirin", "salicylates"),
}

_TEXT = {
    "en": {
        "significance": {
            "high": "High risk: avoid the combination or monitor closely",
            "moderate": "Moderate risk: consider alternatives or adjust the dose",
            "low": "Low risk: routine monitoring",
        },
        "interaction_advice": {
            "high": "Avoid the combination. Consider alternative medications.",
            "moderate": "Use with caution. Monitor adverse effects and adjust the dose if needed.",
            "low": "Minor interaction. Routine monitoring recommended.",
        },
        "allergy_warning": "ALERT: possible allergic reaction to {medication} given a known {allergy} allergy",
        "allergy_advice": "DO NOT ADMINISTER. Find an alternative immediately.",
        "contraindication_warning": "{medication} is not recommended for patients with {condition}",
        "contraindication_advice": "Consider an alternative medication.",
        "kidney_reason": "Kidney function: {level}",
        "liver_reason": "Liver function: {level}",
        "elderly_reason": "Elderly patient",
        "elderly_advice": "Consider a lower starting dose and titrate gradually",
        "kidney_advice": {
            "mild": "Reduce the dose by 25% or extend the dosing interval",
            "moderate": "Reduce the dose by 50% or extend the interval significantly",
            "severe": "Consider an alternative or reduce the dose drastically",
        },
        "liver_advice": {
            "mild": "Increase liver monitoring; the dose may need reducing",
            "moderate": "Reduce the dose by 50% with strict liver monitoring",
            "severe": "Avoid the medication or use the minimum dose with intensive monitoring",
        },
        "routine_monitoring": "Routine clinical monitoring",
        "risk_advice": {
            "critical": "URGENT REVIEW REQUIRED: consult a clinical pharmacist immediately",
            "high": "Pharmacist review required before dispensing",
            "moderate": "Increased monitoring recommended",
            "low": "Safe medication profile with routine monitoring",
        },
        "risk_factors": "{interactions} interactions, {contraindications} contraindications, {allergies} allergy alerts",
        "critical": [
            "Critical interactions detected",
            "Review with a pharmacist before dispensing",
            "Consider alternative medications",
        ],
        "high": ["Strict clinical monitoring required", "Educate the patient about adverse effects"],
        "general": [
            "Keep the medication list up to date",
            "Inform every healthcare provider",
            "Review interactions periodically",
        ],
        "disclaimer": (
            "This automated analysis does not replace professional pharmacological judgement. "
            "Always consult a pharmacist or physician."
        ),
        "alert": "Critical drug interactions detected by automated screening",
    },
    "es": {
        "significance": {
            "high": "Alto riesgo: evitar la combinación o monitorear estrictamente",
            "moderate": "Riesgo moderado: considerar alternativas o ajustar la dosis",
            "low": "Riesgo bajo: monitoreo rutinario",
        },
        "interaction_advice": {
            "high": "Evitar la combinación. Considerar medicamentos alternativos.",
            "moderate": "Usar con precaución. Monitorear efectos adversos y ajustar la dosis si es necesario.",
            "low": "Interacción menor. Monitoreo rutinario recomendado.",
        },
        "allergy_warning": "ALERTA: posible reacción alérgica a {medication} por alergia conocida a {allergy}",
        "allergy_advice": "NO ADMINISTRAR. Buscar una alternativa inmediatamente.",
        "contraindication_warning": "{medication} no se recomienda en pacientes con {condition}",
        "contraindication_advice": "Considerar un medicamento alternativo.",
        "kidney_reason": "Función renal: {level}",
        "liver_reason": "Función hepática: {level}",
        "elderly_reason": "Paciente geriátrico",
        "elderly_advice": "Considerar reducir la dosis inicial y titular gradualmente",
        "kidney_advice": {
            "mild": "Reducir la dosis un 25% o extender el intervalo de dosificación",
            "moderate": "Reducir la dosis un 50% o extender el intervalo significativamente",
            "severe": "Considerar una alternativa o reducir la dosis drásticamente",
        },
        "liver_advice": {
            "mild": "Aumentar el monitoreo hepático; posible reducción de dosis",
            "moderate": "Reducir la dosis un 50% con monitoreo hepático estricto",
            "severe": "Evitar el medicamento o usar la dosis mínima con monitoreo intensivo",
        },
        "routine_monitoring": "Monitoreo clínico rutinario",
        "risk_advice": {
            "critical": "REVISIÓN URGENTE REQUERIDA: consultar a un farmacéutico clínico inmediatamente",
            "high": "Revisión farmacéutica requerida antes de dispensar",
            "moderate": "Monitoreo aumentado recomendado",
            "low": "Perfil de medicamentos seguro con monitoreo rutinario",
        },
        "risk_factors": "{interactions} interacciones, {contraindications} contraindicaciones, {allergies} alertas de alergia",
        "critical": [
            "Interacciones críticas detectadas",
            "Revisar con un farmacéutico antes de dispensar",
            "Considerar medicamentos alternativos",
        ],
        "high": ["Monitoreo clínico estricto requerido", "Educar al paciente sobre efectos adversos"],
        "general": [
            "Mantener actualizada la lista de medicamentos",
            "Informar a todos los proveedores de salud",
            "Revisar las interacciones periódicamente",
        ],
        "disclaimer": (
            "Este análisis automático no sustituye el criterio farmacológico profesional. "
            "Consulte siempre con un farmacéutico o médico."
        ),
        "alert": "El análisis automático detectó interacciones medicamentosas críticas",
    },
}


def texts(language: str) -> Dict[str, Any]:
    return _TEXT.get(language, _TEXT["en"])


def canonical_drug(name: str) -> str:
    key = name.strip().lower()
    return DRUG_ALIASES.get(key, key)


def find_interaction(drug_a: str, drug_b: str) -> Optional[Interaction]:
    """Known interaction between two canonical drug names, looked up from either side."""
    for source, target in ((drug_a, drug_b), (drug_b, drug_a)):
        profile = FORMULARY.get(source)
        if profile is None:
            continue
        for interaction in profile.interactions:
            if interaction.drug == target:
                return interaction
    return None


def _allergy_warning(medication: str, allergies: Sequence[str], text: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    drug = canonical_drug(medication)
    for allergy in allergies:
        group = ALLERGY_GROUPS.get(canonical_drug(allergy), ())
        if drug in group:
            return {
                "medication": medication,
                "allergy": allergy,
                "severity": "critical",
                "warning": text["allergy_warning"].format(medication=medication, allergy=allergy),
                "recommendation": text["allergy_advice"],
            }
    return None


def _contraindication(medication: str, conditions: Sequence[str], text: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    profile = FORMULARY.get(canonical_drug(medication))
    if profile is None:
        return None
    for condition in conditions:
        lowered = condition.lower()
        if any(contra in lowered for contra in profile.contraindications):
            return {
                "medication": medication,
                "condition": condition,
                "severity": "high",
                "warning": text["contraindication_warning"].format(medication=medication, condition=condition),
                "recommendation": text["contraindication_advice"],
            }
    return None


def _dosage_adjustments(medication: str, patient_info: Dict[str, Any], text: Dict[str, Any]) -> List[Dict[str, Any]]:
    adjustments = []
    for organ in ("kidney", "liver"):
        level = patient_info.get(f"{organ}Function")
        if level and level != "normal":
            adjustments.append(
                {
                    "medication": medication,
                    "reason": text[f"{organ}_reason"].format(level=level),
                    "recommendation": text[f"{organ}_advice"].get(level, ""),
                }
            )
    if patient_info.get("age", 0) > ELDERLY_AGE:
        adjustments.append(
            {"medication": medication, "reason": text["elderly_reason"], "recommendation": text["elderly_advice"]}
        )
    return adjustments


def _medication_risk(patient_info: Dict[str, Any]) -> str:
    if patient_info.get("age", 0) > SENIOR_AGE:
        return "high"
    if len(patient_info.get("conditions") or []) > 2:
        return "moderate"
    return "low"


def risk_assessment(
    interactions: Sequence[Dict[str, Any]],
    contraindications: Sequence[Dict[str, Any]],
    allergy_warnings: Sequence[Dict[str, Any]],
    patient_info: Dict[str, Any],
    language: str = "en",
) -> Dict[str, Any]:
    text = texts(language)
    score = sum(INTERACTION_POINTS.get(i["severity"], 0) for i in interactions)
    score += len(contraindications) * CONTRAINDICATION_POINTS
    score += len(allergy_warnings) * ALLERGY_POINTS
    if patient_info.get("age", 0) > SENIOR_AGE:
        score += SENIOR_POINTS
    if len(patient_info.get("conditions") or []) > MULTIMORBIDITY_CONDITIONS:
        score += MULTIMORBIDITY_POINTS

    level = next((name for threshold, name in RISK_THRESHOLDS if score >= threshold), "low")
    return {
        "riskScore": score,
        "riskLevel": level,
        "recommendation": text["risk_advice"][level],
        "factors": text["risk_factors"].format(
            interactions=len(interactions),
            contraindications=len(contraindications),
            allergies=len(allergy_warnings),
        ),
    }


def analyze_interactions(
    medications: Sequence[Dict[str, Any]],
    patient_info: Dict[str, Any],
    new_medication: Optional[Dict[str, Any]] = None,
    include_contraindications: bool = True,
    include_dosage_adjustments: bool = True,
    language: str = "en",
) -> Dict[str, Any]:
    """Screen a medication list (plus an optional new one) for one patient."""
    text = texts(language)
    all_medications = list(medications) + ([new_medication] if new_medication else [])
    names = [med["name"] for med in all_medications]

    interactions = []
    overall = "low"
    critical = False
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            found = find_interaction(canonical_drug(first), canonical_drug(second))
            if found is None:
                continue
            interactions.append(
                {
                    "medication1": first,
                    "medication2": second,
                    "severity": found.severity,
                    "mechanism": found.mechanism,
                    "clinicalSignificance": text["significance"][found.severity],
                    "recommendation": text["interaction_advice"][found.severity],
                }
            )
            if found.severity == "high":
                critical = True
                overall = "high"
            elif found.severity == "moderate" and overall != "high":
                overall = "moderate"

    allergies = patient_info.get("allergies") or []
    allergy_warnings = [w for w in (_allergy_warning(name, allergies, text) for name in names) if w]
    if allergy_warnings:
        critical = True

    contraindications = []
    if include_contraindications:
        conditions = patient_info.get("conditions") or []
        contraindications = [c for c in (_contraindication(name, conditions, text) for name in names) if c]

    monitoring: List[str] = []
    for name in names:
        profile = FORMULARY.get(canonical_drug(name))
        for item in profile.monitoring if profile else (text["routine_monitoring"],):
            if item not in monitoring:
                monitoring.append(item)

    recommendations = []
    if critical:
        recommendations += text["critical"]
    if overall == "high":
        recommendations += text["high"]
    recommendations += text["general"]

    return {
        "overallRisk": overall,
        "hasCriticalInteractions": critical,
        "interactionCount": len(interactions),
        "interactions": interactions,
        "contraindications": contraindications,
        "allergyWarnings": allergy_warnings,
        "dosageAdjustments": (
            [adj for name in names for adj in _dosage_adjustments(name, patient_info, text)]
            if include_dosage_adjustments
            else None
        ),
        "monitoringRecommendations": monitoring,
        "riskAssessment": risk_assessment(interactions, contraindications, allergy_warnings, patient_info, language),
        "recommendations": recommendations,
        "analyzedMedications": [
            {
                "name": med["name"],
                "dosage": med.get("dosage"),
                "frequency": med.get("frequency"),
                "riskLevel": _medication_risk(patient_info),
            }
            for med in all_medications
        ],
    }
