import json

import pytest

from agents.diagnosis.normalizer import ResponseNormalizer, extract_json_object, normalize_confidence
from core.exceptions import ParseError

from .conftest import diagnosis_document, diagnosis_text

@pytest.fixture
def normalizer():
    return ResponseNormalizer()

def area(**fields):
    base = {"label": "spot", "severity": "mild", "radius": 0.05}
    base.update(fields)
    return base

def parse_areas(normalizer, areas):
    return normalizer.parse(json.dumps(diagnosis_document(highlightedAreas=areas))).highlighted_areas

class TestExtraction:
    def test_fenced_block_matches_unwrapped_json(self, normalizer):
        raw = diagnosis_text()
        fenced = f"Here is the analysis:\n```json\n{raw}\n```\nLet me know if you need more."

        assert normalizer.parse(fenced) == normalizer.parse(raw)

    def test_plain_fence_without_language_tag(self, normalizer):
        raw = diagnosis_text()
        assert normalizer.parse(f"```\n{raw}\n```") == normalizer.parse(raw)

    def test_json_embedded_in_prose(self, normalizer):
        raw = diagnosis_text()
        assert normalizer.parse(f"Sure! {raw} Hope this helps.") == normalizer.parse(raw)

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]", "{not: valid}"])
    def test_unrecoverable_text_raises_parse_error(self, normalizer, text):
        with pytest.raises(ParseError):
            normalizer.parse(text)

    def test_extract_rejects_non_string(self):
        with pytest.raises(ParseError):
            extract_json_object(None)

class TestRepair:
    def test_canonical_shape(self, normalizer):
        diagnosis = normalizer.parse(diagnosis_text(confidence=80))

        assert diagnosis.crop_type == "Tomato"
        assert diagnosis.plant_identity.name == "Tomato"
        assert diagnosis.primary_disease.name == "Early Blight"
        assert diagnosis.primary_disease.evidence_from_cv == "Brown target spots"
        assert diagnosis.primary_confidence == 80
        assert diagnosis.highlighted_areas[0].center.x == 0.4
        assert diagnosis.severity == "medium"

    def test_confident_plant_identity_overrides_crop_type(self, normalizer):
        raw = diagnosis_text(plant_id={"type": "Olive Tree", "confidence": 85}, cropType="Tomato")
        assert normalizer.parse(raw).crop_type == "Olive Tree"

    def test_unsure_plant_identity_keeps_crop_type(self, normalizer):
        raw = diagnosis_text(plant_id={"type": "Olive Tree", "confidence": 70}, cropType="Tomato")
        diagnosis = normalizer.parse(raw)

        assert diagnosis.crop_type == "Tomato"
        assert diagnosis.plant_identity.name == "Olive Tree"

    def test_fractional_confidences_become_percentages(self, normalizer):
        raw = diagnosis_text(plant_id={"type": "Potato", "confidence": 0.93})
        document = json.loads(raw)
        document["diseases"][0]["confidence"] = 0.756
        diagnosis = normalizer.parse(json.dumps(document))

        assert diagnosis.primary_confidence == 76
        assert diagnosis.plant_identity.confidence == 93
        assert diagnosis.crop_type == "Potato"

    def test_confidences_are_clamped(self, normalizer):
        document = diagnosis_document()
        document["diseases"][0]["confidence"] = 140
        assert normalizer.parse(json.dumps(document)).primary_confidence == 100

    @pytest.mark.parametrize("given, expected", [
        ("mild", "low"), ("Moderate", "medium"), ("severe", "high"), ("critical", "high"), (None, "low"),
    ])
    def test_severity_synonyms(self, normalizer, given, expected):
        assert normalizer.parse(diagnosis_text(severity=given)).severity == expected

    def test_sparse_document_gets_defaults(self, normalizer):
        diagnosis = normalizer.parse('{"diseases": ["Leaf Curl"]}')

        assert diagnosis.crop_type == "Unknown"
        assert diagnosis.diseases[0].name == "Leaf Curl"
        assert diagnosis.diseases[0].confidence == 0
        assert diagnosis.highlighted_areas == []
        assert diagnosis.tool_calls_plan == []
        assert diagnosis.symptoms == []
        assert diagnosis.severity == "low"
        assert diagnosis.demo_mode is False

    def test_empty_object_is_a_valid_sparse_diagnosis(self, normalizer):
        assert normalizer.parse("{}").diseases == []

    def test_single_strings_become_lists(self, normalizer):
        diagnosis = normalizer.parse(diagnosis_text(symptoms="Wilting", preventionTips="Water at the base"))

        assert diagnosis.symptoms == ["Wilting"]
        assert diagnosis.prevention_tips == ["Water at the base"]

    def test_tool_calls_plan_is_normalized(self, normalizer):
        raw = diagnosis_text(tool_calls=[
            {"toolName": "get_weather_forecast", "parameters": {"location": "Casablanca"}, "reasoning": "timing"},
            {"tool_name": "search_disease_research", "parameters": {"disease": "Early Blight"}},
            {"parameters": {"x": 1}},
        ])
        plan = normalizer.parse(raw).tool_calls_plan

        assert [c.tool_name for c in plan] == ["get_weather_forecast", "search_disease_research"]
        assert plan[0].reasoning == "timing"

    def test_loose_optional_strings_are_coerced(self, normalizer):
        document = diagnosis_document(estimatedYieldImpact=15, demoReason=["quota", "exceeded"])
        document["diseases"][0]["evidenceFromCV"] = 3
        diagnosis = normalizer.parse(json.dumps(document))

        assert diagnosis.estimated_yield_impact == "15"
        assert diagnosis.demo_reason == "quota exceeded"
        assert diagnosis.primary_disease.evidence_from_cv == "3"

    def test_blank_optional_strings_become_none(self, normalizer):
        diagnosis = normalizer.parse(diagnosis_text(estimatedYieldImpact="  ", demoReason=[]))

        assert diagnosis.estimated_yield_impact is None
        assert diagnosis.demo_reason is None

    @pytest.mark.parametrize("value, expected", [
        (float("nan"), 0), (float("inf"), 0), (float("-inf"), 0), ("85.5", 85.5), ("Infinity", 0),
    ])
    def test_non_finite_numbers_are_repaired(self, normalizer, value, expected):
        document = diagnosis_document(sustainabilityScore=value)
        document["diseases"][0]["confidence"] = value
        diagnosis = normalizer.parse(json.dumps(document))

        assert diagnosis.primary_confidence == expected
        assert diagnosis.sustainability_score == expected

class TestGeometry:
    @pytest.mark.parametrize("x, y", [
        (0.05, 0.5), (0.95, 0.5), (0.5, 0.0), (0.5, 0.99), (0.0999, 0.5), (0.5, 0.9001),
    ])
    def test_edge_centers_are_dropped(self, normalizer, x, y):
        assert parse_areas(normalizer, [area(center_x=x, center_y=y)]) == []

    @pytest.mark.parametrize("x, y", [(0.1, 0.1), (0.9, 0.9), (0.5, 0.5)])
    def test_inner_centers_are_kept(self, normalizer, x, y):
        areas = parse_areas(normalizer, [area(center_x=x, center_y=y)])
        assert len(areas) == 1
        assert (areas[0].center.x, areas[0].center.y) == (x, y)

    def test_oversized_radius_is_dropped(self, normalizer):
        assert parse_areas(normalizer, [area(center_x=0.5, center_y=0.5, radius=0.31)]) == []

    def test_non_positive_radius_is_dropped(self, normalizer):
        assert parse_areas(normalizer, [area(center_x=0.5, center_y=0.5, radius=0)]) == []

    def test_missing_radius_gets_default(self, normalizer):
        candidate = {"label": "spot", "center": {"x": 0.5, "y": 0.5}}
        assert parse_areas(normalizer, [candidate])[0].radius == 0.05

    def test_area_without_geometry_is_dropped(self, normalizer):
        assert parse_areas(normalizer, [{"label": "somewhere"}]) == []

    def test_legacy_quad_becomes_center_and_radius(self, normalizer):
        # [y1, x1, y2, x2] on a 0-1000 scale
        areas = parse_areas(normalizer, [{"label": "spot", "bbox": [400, 300, 500, 500]}])

        assert len(areas) == 1
        assert areas[0].center.x == pytest.approx(0.4)
        assert areas[0].center.y == pytest.approx(0.45)
        assert areas[0].radius == pytest.approx(0.1)
        assert areas[0].severity == "moderate"

    def test_legacy_box_wider_than_half_the_image_is_dropped(self, normalizer):
        candidate = {"label": "leaf", "bbox": {"x": 0.2, "y": 0.3, "width": 0.6, "height": 0.2}}
        assert parse_areas(normalizer, [candidate]) == []

    def test_legacy_box_outside_image_is_dropped(self, normalizer):
        candidate = {"label": "leaf", "bbox": {"x": 0.8, "y": 0.3, "width": 0.3, "height": 0.2}}
        assert parse_areas(normalizer, [candidate]) == []

    @pytest.mark.parametrize("candidate", [
        area(center={"x": 0.5, "y": 0.5}, radius=float("nan")),
        area(center={"x": 0.5, "y": 0.5}, radius=float("inf")),
        area(center_x=float("nan"), center_y=0.5),
        area(center={"x": 0.5, "y": float("-inf")}),
        {"label": "quad", "bbox": [float("nan"), 300, 500, 500]},
    ])
    def test_non_finite_geometry_drops_only_the_area(self, normalizer, candidate):
        diagnosis = normalizer.parse(json.dumps(diagnosis_document(highlightedAreas=[candidate])))

        assert diagnosis.highlighted_areas == []
        assert diagnosis.primary_disease.name == "Early Blight"

    def test_only_bad_areas_are_dropped(self, normalizer):
        areas = parse_areas(normalizer, [
            area(label="good", center_x=0.3, center_y=0.3),
            area(label="edge", center_x=0.02, center_y=0.3),
            area(label="also good", center={"x": 0.6, "y": 0.7}),
        ])
        assert [a.label for a in areas] == ["good", "also good"]

class TestIdempotence:
    @pytest.mark.parametrize("document", [
        diagnosis_document(),
        diagnosis_document(plant_id={"type": "Olive", "confidence": 0.5}, severity="severe"),
        diagnosis_document(highlightedAreas=[{"label": "q", "bbox": [300, 300, 400, 450]}]),
        {"diseases": ["Rust"], "symptoms": "Orange pustules"},
    ])
    def test_reparsing_normalized_output_is_a_no_op(self, normalizer, document):
        first = normalizer.parse(json.dumps(document))
        second = normalizer.parse(first.model_dump_json(by_alias=True))

        assert second == first

@pytest.mark.parametrize("value, expected", [
    (0.5, 50), (0.004, 0), (1, 1), (85, 85), (-3, 0), (250, 100), ("72%", 72), (None, 0), (True, 0),
    (float("nan"), 0), (float("inf"), 0), ("nan", 0), ("-Infinity", 0),
])
def test_normalize_confidence(value, expected):
    assert normalize_confidence(value) == expected
