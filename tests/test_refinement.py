import pytest

from agents.diagnosis.models import Disease, NormalizedDiagnosis
from agents.diagnosis.refinement import RefinementGate
from agents.tools.models import ToolResult

def diagnosis_with(confidence):
    return NormalizedDiagnosis(diseases=[Disease(name="Early Blight", confidence=confidence)])

def results(*names):
    return [ToolResult(tool_name=name, output={}) for name in names]

@pytest.fixture
def gate():
    return RefinementGate()

@pytest.mark.parametrize("confidence, expected", [(60, True), (85, True), (85.5, False), (92, False)])
def test_threshold(gate, confidence, expected):
    assert gate.should_refine(diagnosis_with(confidence), results("get_weather_forecast")) is expected

def test_no_tool_results_never_refines(gate):
    assert gate.should_refine(diagnosis_with(10), []) is False

def test_no_diseases_counts_as_zero_confidence(gate):
    assert gate.should_refine(NormalizedDiagnosis(), results("query_crop_database")) is True

def test_custom_threshold():
    assert RefinementGate(threshold=50).should_refine(diagnosis_with(60), results("x")) is False

def test_audit_note_lists_tools_in_order():
    note = RefinementGate.audit_note(results("get_weather_forecast", "query_crop_database"))
    assert note == "Verified with external tools: get_weather_forecast, query_crop_database."
