import pytest

from agents.diagnosis.models import AnalysisRequest
from agents.diagnosis.normalizer import ResponseNormalizer
from agents.diagnosis.orchestrator import AnalysisOrchestrator
from core.exceptions import AuthQuotaError, CompletionError, InputError

from .conftest import FakeCompletionClient, FakePreprocessingService, diagnosis_text

WEATHER_CALL = {"toolName": "get_weather_forecast", "parameters": {"location": "Meknes"}, "reasoning": "timing"}
CROP_CALL = {"toolName": "query_crop_database", "parameters": {"cropType": "Tomato", "query": "treatment_options"}}

IMAGE = "aGVsbG8="

def orchestrator_for(client, preprocessing=None):
    return AnalysisOrchestrator(client, preprocessing=preprocessing or FakePreprocessingService())

def request(**kwargs):
    return AnalysisRequest(image=IMAGE, **kwargs)

class TestFastPath:
    async def test_confident_diagnosis_skips_refinement(self):
        primary = diagnosis_text(confidence=92, tool_calls=[WEATHER_CALL])
        client = FakeCompletionClient(primary)

        result = await orchestrator_for(client).run(request())

        assert len(client.calls) == 1
        assert result.fast_path is True
        assert result.stage_status.refinement == "skipped"
        assert result.stage_status.tool_calling == "completed"
        assert result.tools_used == ["get_weather_forecast"]
        assert result.diagnosis.agentic_reasoning.endswith("Verified with external tools: get_weather_forecast.")
        assert result.diagnosis.primary_confidence == 92

    async def test_no_tool_calls_leaves_reasoning_untouched(self):
        primary = diagnosis_text(confidence=40)
        result = await orchestrator_for(FakeCompletionClient(primary)).run(request())

        assert result.diagnosis == ResponseNormalizer().parse(primary)
        assert result.tool_results == []
        assert result.stage_status.tool_calling == "skipped"
        assert result.fast_path is True

    async def test_tools_disabled(self):
        primary = diagnosis_text(confidence=50, tool_calls=[WEATHER_CALL])
        client = FakeCompletionClient(primary)

        result = await orchestrator_for(client).run(request(enable_tools=False))

        assert len(client.calls) == 1
        assert result.tool_results == []
        assert "Verified with external tools" not in result.diagnosis.agentic_reasoning

    async def test_every_tool_failing_marks_stage_failed(self):
        primary = diagnosis_text(confidence=95, tool_calls=[{"toolName": "teleport", "parameters": {}}])
        result = await orchestrator_for(FakeCompletionClient(primary)).run(request())

        assert result.stage_status.tool_calling == "failed"
        assert result.tool_results[0].failed

class TestRefinement:
    async def test_refined_diagnosis_replaces_initial(self):
        primary = diagnosis_text(confidence=60, tool_calls=[WEATHER_CALL, CROP_CALL])
        refined = diagnosis_text(confidence=88, agenticReasoning="Weather confirms blight pressure.")
        client = FakeCompletionClient(primary, refined)

        result = await orchestrator_for(client).run(request(language="fr"))

        assert len(client.calls) == 2
        assert client.calls[1]["image"] is None
        assert "French" in client.calls[1]["prompt"]
        assert result.stage_status.refinement == "completed"
        assert result.fast_path is False
        assert result.diagnosis.primary_confidence == 88
        assert result.tools_used == ["get_weather_forecast", "query_crop_database"]

    async def test_unparsable_refinement_keeps_initial_diagnosis(self):
        primary = diagnosis_text(confidence=60, tool_calls=[WEATHER_CALL])
        client = FakeCompletionClient(primary, "I could not produce JSON this time, sorry.")

        result = await orchestrator_for(client).run(request())

        initial = ResponseNormalizer().parse(primary)
        assert result.diagnosis.model_dump_json() == initial.model_dump_json()
        assert result.stage_status.refinement == "failed"
        assert result.fast_path is False

    async def test_refinement_service_error_keeps_initial_diagnosis(self):
        primary = diagnosis_text(confidence=60, tool_calls=[WEATHER_CALL])
        client = FakeCompletionClient(primary, CompletionError("upstream 500"))

        result = await orchestrator_for(client).run(request())

        assert result.diagnosis == ResponseNormalizer().parse(primary)
        assert result.stage_status.refinement == "failed"

class TestFailures:
    async def test_auth_failure_returns_demo_diagnosis(self):
        client = FakeCompletionClient(AuthQuotaError("API key not valid"))

        result = await orchestrator_for(client).run(request())

        assert result.diagnosis.demo_mode is True
        assert result.diagnosis.demo_reason
        assert result.diagnosis.primary_disease.name == "General Plant Stress"
        assert result.stage_status.preprocessing == "skipped"
        assert result.stage_status.visual_analysis == "failed"
        assert result.tool_results == []
        assert result.preprocessing is None
        assert len(client.calls) == 1

    async def test_completion_error_returns_fallback_without_demo_mode(self):
        result = await orchestrator_for(FakeCompletionClient(CompletionError("boom"))).run(request())

        assert result.diagnosis.demo_mode is False
        assert result.diagnosis.primary_confidence == 30
        assert result.stage_status.visual_analysis == "failed"
        assert result.tool_results == []

    async def test_unparsable_primary_returns_fallback(self):
        result = await orchestrator_for(FakeCompletionClient("The leaf looks sick.")).run(request())

        assert result.diagnosis.primary_disease.name == "General Plant Stress"
        assert result.diagnosis.demo_mode is False
        assert result.stage_status.visual_analysis == "failed"

    @pytest.mark.parametrize("image", [None, "", "   "])
    async def test_missing_image_is_rejected(self, image):
        client = FakeCompletionClient()
        with pytest.raises(InputError):
            await orchestrator_for(client).run(AnalysisRequest(image=image))
        assert client.calls == []

class TestPreprocessingStage:
    async def test_preprocessing_summary_is_attached(self, preprocessing_result):
        preprocessing = FakePreprocessingService(result=preprocessing_result)
        result = await orchestrator_for(FakeCompletionClient(diagnosis_text()), preprocessing).run(request())

        assert result.stage_status.preprocessing == "completed"
        assert result.preprocessing.lesions_detected == 1
        assert result.preprocessing.overall_health == 92

    async def test_preprocessing_failure_does_not_fail_analysis(self):
        preprocessing = FakePreprocessingService(error=RuntimeError("decoder crashed"))
        result = await orchestrator_for(FakeCompletionClient(diagnosis_text()), preprocessing).run(request())

        assert result.stage_status.preprocessing == "failed"
        assert result.stage_status.visual_analysis == "completed"
        assert result.preprocessing is None

    async def test_preprocessing_disabled(self):
        preprocessing = FakePreprocessingService()
        result = await orchestrator_for(FakeCompletionClient(diagnosis_text()), preprocessing).run(
            request(enable_preprocessing=False)
        )

        assert preprocessing.calls == 0
        assert result.stage_status.preprocessing == "skipped"

    async def test_real_preprocessing_runs_alongside_visual_analysis(self, leaf_image):
        orchestrator = AnalysisOrchestrator(FakeCompletionClient(diagnosis_text()))
        result = await orchestrator.run(AnalysisRequest(image=leaf_image))

        assert result.stage_status.preprocessing == "completed"
        assert result.preprocessing.lesions_detected == 1
