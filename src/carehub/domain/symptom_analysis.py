"""
Rule-based symptom triage.

A static knowledge table maps known symptoms to candidate conditions. Each
reported symptom contributes ``severity points x multiplier`` to the overall
score and to every condition it suggests; the ranking, urgency and advice are
derived from those scores. This is a triage aid, not a diagnosis.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

SEVERITY_POINTS = {"mild": 1, "moderate": 3, "severe": 5}
URGENCY_PRIORITY = {"low": 1, "moderate": 2, "high": 3, "emergency": 4}

MAX_CONDITIONS = 5
MAX_PROBABILITY = 95
MAX_CONFIDENCE = 90
EMERGENCY_SCORE = 10
URGENT_SCORE = 5


@dataclass(frozen=True)
class SymptomRule:
    conditions: Tuple[str, ...]
    urgency: str
    multiplier: float


@dataclass(frozen=True)
class ConditionInfo:
    urgency: str
    specialist: str


SYMPTOMS: Dict[str, SymptomRule] = {
    "fever": SymptomRule(("infection", "flu", "covid-19", "urinary tract infection"), "moderate", 1.2),
    "headache": SymptomRule(("tension", "migraine", "sinusitis", "hypertension"), "low", 1.0),
    "chest pain": SymptomRule(("heart attack", "angina", "reflux", "anxiety"), "high", 2.0),
    "shortness of breath": SymptomRule(("asthma", "pneumonia", "covid-19", "heart failure"), "high", 2.5),
    "nausea": SymptomRule(
        ("gastroenteritis", "pregnancy", "medication side effects", "migraine"), "low", 0.8
    ),
}

SYMPTOM_ALIASES = {
    "fiebre": "fever",
    "dolor de cabeza": "headache",
    "dolor de pecho": "chest pain",
    "dificultad para respirar": "shortness of breath",
    "náuseas": "nausea",
    "nauseas": "nausea",
    "pérdida de conciencia": "loss of consciousness",
}

CONDITIONS: Dict[str, ConditionInfo] = {
    "heart attack": ConditionInfo("emergency", "cardiology"),
    "pneumonia": ConditionInfo("urgent", "pulmonology"),
    "covid-19": ConditionInfo("urgent", "internal medicine"),
    "migraine": ConditionInfo("routine", "neurology"),
    "asthma": ConditionInfo("urgent", "pulmonology"),
}

RED_FLAG_SYMPTOMS = ("chest pain", "shortness of breath", "loss of consciousness")
RESPIRATORY_CONDITIONS = ("pneumonia", "asthma", "covid-19")
CARDIAC_CONDITIONS = ("heart attack", "angina")

_TEXT = {
    "en": {
        "descriptions": {
            "heart attack": "Interrupted blood flow to the heart",
            "pneumonia": "Infection of the lungs",
            "covid-19": "Viral infection caused by SARS-CoV-2",
            "migraine": "Intense, recurring headache",
            "asthma": "Inflammation of the airways",
            "gastroenteritis": "Inflammation of the stomach and intestines",
            "hypertension": "High blood pressure",
            "anxiety": "Anxiety disorder",
        },
        "default_description": "Medical condition that needs evaluation",
        "emergency": [
            "SEEK IMMEDIATE MEDICAL ATTENTION - go to the emergency room",
            "Do not drive; ask someone to take you to the hospital",
            "If symptoms get worse, call emergency services (911)",
        ],
        "urgent": [
            "Get medical attention within the next 24 hours",
            "Consider visiting an urgent care center",
            "Monitor your symptoms closely",
        ],
        "routine": [
            "Schedule an appointment with your primary care doctor",
            "Keep a log of your symptoms",
        ],
        "respiratory": ["Rest and stay hydrated", "Avoid strenuous physical effort"],
        "cardiac": ["Avoid intense physical activity", "Take cardiac medication as prescribed"],
        "general": ["Keep a detailed record of your symptoms", "Follow your doctor's advice"],
        "follow_up": {
            "emergency": "Immediate",
            "urgent": "24-48 hours",
            "moderate": "1-3 days",
            "default": "1-2 weeks",
        },
        "severe_symptom": "Severe symptom: {name}",
        "emergency_condition": "Possible emergency condition detected",
        "risk_age": "Advanced age increases the risk of complications",
        "risk_diabetes": "Diabetes can complicate infections",
        "risk_hypertension": "Hypertension requires close monitoring",
        "risk_polypharmacy": "Multiple medications can cause interactions",
        "disclaimer": (
            "This analysis is generated automatically and does not replace professional "
            "medical judgment. Always consult a qualified physician."
        ),
        "alert": "Automated symptom analysis detected a possible medical emergency",
    },
    "es": {
        "descriptions": {
            "heart attack": "Interrupción del flujo sanguíneo al corazón",
            "pneumonia": "Infección de los pulmones",
            "covid-19": "Infección viral por SARS-CoV-2",
            "migraine": "Dolor de cabeza intenso y recurrente",
            "asthma": "Inflamación de las vías respiratorias",
            "gastroenteritis": "Inflamación del estómago e intestinos",
            "hypertension": "Presión arterial elevada",
            "anxiety": "Trastorno de ansiedad",
        },
        "default_description": "Condición médica que requiere evaluación",
        "emergency": [
            "BUSQUE ATENCIÓN MÉDICA INMEDIATA - vaya a urgencias",
            "No conduzca, pida que alguien lo lleve al hospital",
            "Si los síntomas empeoran, llame a emergencias (911)",
        ],
        "urgent": [
            "Busque atención médica en las próximas 24 horas",
            "Considere visitar un centro de atención urgente",
            "Monitoree los síntomas de cerca",
        ],
        "routine": [
            "Programe una cita con su médico de cabecera",
            "Mantenga un registro de los síntomas",
        ],
        "respiratory": ["Descanse y manténgase hidratado", "Evite el esfuerzo físico excesivo"],
        "cardiac": ["Evite actividades físicas intensas", "Tome los medicamentos cardíacos según prescripción"],
        "general": ["Mantenga un registro detallado de síntomas", "Siga las recomendaciones de su médico"],
        "follow_up": {
            "emergency": "Inmediato",
            "urgent": "24-48 horas",
            "moderate": "1-3 días",
            "default": "1-2 semanas",
        },
        "severe_symptom": "Síntoma grave: {name}",
        "emergency_condition": "Posible condición de emergencia detectada",
        "risk_age": "Edad avanzada aumenta riesgo de complicaciones",
        "risk_diabetes": "Diabetes puede complicar infecciones",
        "risk_hypertension": "Hipertensión requiere monitoreo cuidadoso",
        "risk_polypharmacy": "Polifarmacia puede causar interacciones",
        "disclaimer": (
            "Este análisis es generado automáticamente y no sustituye el criterio médico "
            "profesional. Consulte siempre con un médico calificado."
        ),
        "alert": "El análisis automático detectó una posible emergencia médica",
    },
}

_HISTORY_ALIASES = {
    "diabetes": ("diabetes",),
    "hypertension": ("hypertension", "hipertensión", "hipertension"),
}


def texts(language: str) -> Dict[str, Any]:
    return _TEXT.get(language, _TEXT["en"])


def canonical_symptom(name: str) -> str:
    key = name.strip().lower()
    return SYMPTOM_ALIASES.get(key, key)


def _has_history(history: Sequence[str], condition: str) -> bool:
    lowered = {item.strip().lower() for item in history}
    return any(alias in lowered for alias in _HISTORY_ALIASES[condition])


def rank_conditions(
    symptoms: Sequence[Dict[str, Any]],
) -> Tuple[float, str, List[Tuple[str, float]]]:
    """Score the reported symptoms.

    Returns the total severity score, the highest urgency among known symptoms
    and the conditions sorted by accumulated score (best first).
    """
    total = 0.0
    max_urgency = "routine"
    scores: Dict[str, float] = {}

    for symptom in symptoms:
        rule = SYMPTOMS.get(canonical_symptom(symptom["name"]))
        if rule is None:
            continue
        score = SEVERITY_POINTS.get(symptom.get("severity"), 1) * rule.multiplier
        total += score
        if URGENCY_PRIORITY.get(rule.urgency, 1) > URGENCY_PRIORITY.get(max_urgency, 1):
            max_urgency = rule.urgency
        for condition in rule.conditions:
            scores[condition] = scores.get(condition, 0.0) + score

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return total, max_urgency, ranked


def final_urgency(total: float, max_symptom_urgency: str) -> str:
    if total > EMERGENCY_SCORE:
        return "emergency"
    if total > URGENT_SCORE:
        return "urgent"
    return max_symptom_urgency


def follow_up_timeframe(urgency: str, language: str = "en") -> str:
    timeframes = texts(language)["follow_up"]
    return timeframes.get(urgency, timeframes["default"])


def recommendations_for(conditions: Sequence[Dict[str, Any]], urgency: str, language: str = "en") -> List[str]:
    text = texts(language)
    names = {c["name"] for c in conditions}

    if urgency == "emergency":
        advice = list(text["emergency"])
    elif urgency == "urgent":
        advice = list(text["urgent"])
    else:
        advice = list(text["routine"])

    if names.intersection(RESPIRATORY_CONDITIONS):
        advice.extend(text["respiratory"])
    if names.intersection(CARDIAC_CONDITIONS):
        advice.extend(text["cardiac"])
    advice.extend(text["general"])
    return advice


def red_flags(
    symptoms: Sequence[Dict[str, Any]], conditions: Sequence[Dict[str, Any]], language: str = "en"
) -> List[str]:
    text = texts(language)
    flags = [
        text["severe_symptom"].format(name=symptom["name"])
        for symptom in symptoms
        if canonical_symptom(symptom["name"]) in RED_FLAG_SYMPTOMS and symptom.get("severity") == "severe"
    ]
    if any(c["urgency"] == "emergency" for c in conditions):
        flags.append(text["emergency_condition"])
    return flags


def risk_factors(patient_info: Dict[str, Any], language: str = "en") -> List[str]:
    text = texts(language)
    history = patient_info.get("medicalHistory") or []
    medications = patient_info.get("currentMedications") or []

    factors = []
    if patient_info.get("age", 0) > 65:
        factors.append(text["risk_age"])
    if _has_history(history, "diabetes"):
        factors.append(text["risk_diabetes"])
    if _has_history(history, "hypertension"):
        factors.append(text["risk_hypertension"])
    if len(medications) > 5:
        factors.append(text["risk_polypharmacy"])
    return factors


def analyze_symptoms(
    symptoms: Sequence[Dict[str, Any]],
    patient_info: Dict[str, Any],
    include_recommendations: bool = True,
    language: str = "en",
) -> Dict[str, Any]:
    """Full triage result for one request (camelCase keys, ready to store)."""
    text = texts(language)
    total, max_urgency, ranked = rank_conditions(symptoms)

    conditions = []
    specialists: List[str] = []
    for key, score in ranked[:MAX_CONDITIONS]:
        info: Optional[ConditionInfo] = CONDITIONS.get(key)
        if info is not None and info.specialist not in specialists:
            specialists.append(info.specialist)
        conditions.append(
            {
                "name": key,
                "probability": min(round(score / total * 100), MAX_PROBABILITY),
                "urgency": info.urgency if info else "routine",
                "description": text["descriptions"].get(key, text["default_description"]),
            }
        )

    urgency = final_urgency(total, max_urgency)
    confidence = min(round(len(conditions) / len(symptoms) * 100), MAX_CONFIDENCE) if symptoms else 0

    result = {
        "urgencyLevel": urgency,
        "overallSeverityScore": round(total, 1),
        "confidence": confidence,
        "possibleConditions": conditions,
        "recommendations": recommendations_for(conditions, urgency, language) if include_recommendations else None,
        "recommendedSpecialists": specialists,
        "followUp": {
            "timeframe": follow_up_timeframe(urgency, language),
            "priority": urgency,
            "requiresImmediate": urgency == "emergency",
        },
        "redFlags": red_flags(symptoms, conditions, language),
        "riskFactors": risk_factors(patient_info, language),
    }
    return result
