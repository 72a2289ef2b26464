# server/agents/diagnosis/fallback.py
"""
Deterministic fallback diagnosis used whenever the completion service can't
give us a usable answer
"""
from enum import Enum

from agents.diagnosis.models import Disease, NormalizedDiagnosis

class FallbackReason(str, Enum):
    AUTH_QUOTA = "auth_quota"
    PARSE_FAILURE = "parse_failure"
    COMPLETION_FAILURE = "completion_failure"
    UNEXPECTED = "unexpected"

REASON_MESSAGES = {
    FallbackReason.AUTH_QUOTA: "AI analysis unavailable (API key missing, invalid or out of quota). Showing general guidance.",
    FallbackReason.PARSE_FAILURE: "AI response could not be interpreted. Showing general guidance.",
    FallbackReason.COMPLETION_FAILURE: "AI analysis service failed. Showing general guidance.",
    FallbackReason.UNEXPECTED: "Automated analysis failed. Showing general guidance.",
}

def build_fallback_diagnosis(reason: FallbackReason, demo_mode: bool = False) -> NormalizedDiagnosis:
    """Same reason and flag always give an equal record"""
    reason = FallbackReason(reason)
    message = REASON_MESSAGES[reason]

    return NormalizedDiagnosis(
        crop_type="Unknown",
        diseases=[
            Disease(
                name="General Plant Stress",
                confidence=30,
                description="Unable to perform detailed analysis. General plant health recommendations provided.",
            )
        ],
        highlighted_areas=[],
        symptoms=["Visible plant distress"],
        causes=["Environmental stress", "Nutrient deficiency", "Possible disease"],
        organic_treatments=[
            "Ensure proper watering, nutrition and environmental conditions",
            "Remove severely affected plant parts if safe to do so",
        ],
        chemical_treatments=[],
        prevention_tips=[
            "Check plants regularly for signs of disease or stress",
            "Take clear photos of affected plants",
            "Consult local agricultural extension officer",
        ],
        severity="medium",
        sustainability_score=50,
        agentic_reasoning=message,
        additional_info="Seek expert advice if symptoms spread.",
        demo_mode=demo_mode,
        demo_reason=message if demo_mode else None,
    )
