"""
Symptom triage rules and the /ai/analyze-symptoms endpoint.
"""

from carehub.domain.symptom_analysis import analyze_symptoms, final_urgency, rank_conditions

from conftest import run

ANALYZE = "/api/v1/ai/analyze-symptoms"


def symptom(name, severity, duration="2 days"):
    return {"name": name, "severity": severity, "duration": duration}


def test_cardiorespiratory_emergency():
    result = analyze_symptoms(
        [symptom("chest pain", "severe"), symptom("shortness of breath", "severe")],
        {"age": 58, "gender": "male"},
    )
    assert result["urgencyLevel"] == "emergency"
    assert result["overallSeverityScore"] == 22.5
    assert result["confidence"] == 90

    names = [c["name"] for c in result["possibleConditions"]]
    assert names == ["asthma", "pneumonia", "covid-19", "heart failure", "heart attack"]
    assert result["possibleConditions"][0]["probability"] == 56
    assert result["possibleConditions"][-1]["urgency"] == "emergency"
    assert result["recommendedSpecialists"] == ["pulmonology", "internal medicine", "cardiology"]
    assert result["followUp"] == {"timeframe": "Immediate", "priority": "emergency", "requiresImmediate": True}
    assert len(result["redFlags"]) == 3
    assert "Rest and stay hydrated" in result["recommendations"]
    assert "Avoid intense physical activity" in result["recommendations"]


def test_spanish_names_and_messages():
    result = analyze_symptoms([symptom("Dolor de cabeza", "mild")], {"age": 30}, language="es")
    assert result["urgencyLevel"] == "routine"
    assert [c["probability"] for c in result["possibleConditions"]] == [95, 95, 95, 95]
    assert result["followUp"]["timeframe"] == "1-2 semanas"
    assert result["recommendations"][0] == "Programe una cita con su médico de cabecera"
    assert result["possibleConditions"][1]["description"] == "Dolor de cabeza intenso y recurrente"


def test_symptom_urgency_applies_below_score_thresholds():
    total, max_urgency, ranked = rank_conditions([symptom("fever", "moderate")])
    assert round(total, 1) == 3.6
    assert max_urgency == "moderate"
    assert ranked[0] == ("infection", total)
    assert final_urgency(total, max_urgency) == "moderate"
    assert final_urgency(6, "routine") == "urgent"
    assert final_urgency(10, "routine") == "urgent"
    assert final_urgency(10.5, "routine") == "emergency"


def test_unknown_symptoms_score_nothing():
    result = analyze_symptoms([symptom("itchy elbow", "severe")], {"age": 30}, include_recommendations=False)
    assert result["possibleConditions"] == []
    assert result["confidence"] == 0
    assert result["overallSeverityScore"] == 0
    assert result["recommendations"] is None


def test_risk_factors():
    result = analyze_symptoms(
        [symptom("nausea", "mild")],
        {
            "age": 70,
            "medicalHistory": ["Diabetes", "Hipertensión"],
            "currentMedications": ["a", "b", "c", "d", "e", "f"],
        },
    )
    assert len(result["riskFactors"]) == 4


def request_body(patient_id="pat-1", **overrides):
    body = {
        "patientId": patient_id,
        "symptoms": [symptom("dolor de pecho", "severe"), symptom("fiebre", "moderate")],
        "patientInfo": {"age": 67, "gender": "female", "medicalHistory": ["hypertension"]},
    }
    body.update(overrides)
    return body


def test_endpoint_stores_analysis_and_raises_alert(client, seed, store):
    headers = seed.patient("pat-1")

    response = client.post(ANALYZE, json=request_body(), headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["urgencyLevel"] == "emergency"
    assert data["disclaimer"].startswith("This analysis is generated automatically")

    stored = run(store.get("ai_symptom_analyses", data["id"]))
    assert stored["requestedBy"] == "pat-1"
    assert stored["urgencyLevel"] == "emergency"
    assert stored["requestedUrgencyLevel"] == "routine"
    assert stored["symptoms"][0]["name"] == "dolor de pecho"

    [alert] = run(store.query("emergency_alerts", []))
    assert alert["analysisId"] == data["id"]
    assert alert["resolved"] is False
    assert "heart attack" in alert["conditions"]


def test_routine_result_raises_no_alert(client, seed, store):
    headers = seed.patient("pat-1")
    body = request_body(symptoms=[symptom("headache", "mild")], language="es", urgencyLevel="urgent")
    data = client.post(ANALYZE, json=body, headers=headers).json()["data"]
    assert data["urgencyLevel"] == "routine"
    assert run(store.get("ai_symptom_analyses", data["id"]))["requestedUrgencyLevel"] == "urgent"
    assert data["disclaimer"].startswith("Este análisis")
    assert run(store.count("emergency_alerts", [])) == 0


def test_endpoint_validation_and_auth(client, seed):
    headers = seed.doctor("doc-1")
    assert client.post(ANALYZE, json=request_body()).status_code == 401

    missing = client.post(ANALYZE, json=request_body(patient_id="ghost"), headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "PATIENT_NOT_FOUND"

    empty = client.post(ANALYZE, json=request_body(symptoms=[]), headers=headers)
    assert empty.status_code == 400
    bad_severity = client.post(
        ANALYZE, json=request_body(symptoms=[symptom("fever", "unbearable")]), headers=headers
    )
    assert bad_severity.status_code == 400
