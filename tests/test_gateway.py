import pytest

from proposal_agent.adapters.gateway import LLMGateway
from proposal_agent.adapters.llm_base import LLMRequest, LLMResponse
from proposal_agent.settings import HIGH_OUTPUT_TOKENS, PipelineSettings
from tests.fakes.scripted_adapter import ScriptedAdapter


def make_gateway(adapter, api_delay=0.0, max_retries=2):
    sleeps = []
    settings = PipelineSettings(api_delay=api_delay, max_retries=max_retries)
    return LLMGateway(adapter, settings, sleep=sleeps.append), sleeps


class TestRetries:
    def test_recovers_after_transient_failures(self):
        adapter = ScriptedAdapter(RuntimeError("503"), RuntimeError("503"), "ok")
        gateway, sleeps = make_gateway(adapter)

        response = gateway.generate("model-a", LLMRequest(contents="hi"), retries=2)

        assert response.raw_text == "ok"
        assert len(adapter.calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_reraises_after_retries_plus_one_attempts(self):
        adapter = ScriptedAdapter(*[RuntimeError(f"boom {n}") for n in range(5)])
        gateway, sleeps = make_gateway(adapter)

        with pytest.raises(RuntimeError, match="boom 1"):
            gateway.generate("model-a", LLMRequest(contents="hi"), retries=1)

        assert len(adapter.calls) == 2
        assert sleeps == [1.0]

    def test_zero_retries_is_single_attempt(self):
        adapter = ScriptedAdapter(RuntimeError("boom"), "never")
        gateway, sleeps = make_gateway(adapter)

        with pytest.raises(RuntimeError):
            gateway.generate("model-a", LLMRequest(contents="hi"), retries=0)

        assert len(adapter.calls) == 1
        assert sleeps == []

    def test_default_retries_come_from_settings(self):
        adapter = ScriptedAdapter(*[RuntimeError("boom")] * 5)
        gateway, _ = make_gateway(adapter, max_retries=3)

        with pytest.raises(RuntimeError):
            gateway.generate("model-a", LLMRequest(contents="hi"))

        assert len(adapter.calls) == 4


class TestPacing:
    def test_delay_before_every_attempt(self):
        adapter = ScriptedAdapter(RuntimeError("503"), "ok")
        gateway, sleeps = make_gateway(adapter, api_delay=0.5)
        logs = []

        gateway.generate("model-a", LLMRequest(contents="hi"), retries=1, on_log=logs.append)

        assert sleeps == [0.5, 1.0, 0.5]
        assert logs[0] == "System pause: 0.5s (Rate Limit Control)..."
        assert "Retry attempt 1/1 for model model-a..." in logs

    def test_no_delay_when_disabled(self):
        gateway, sleeps = make_gateway(ScriptedAdapter("ok"))
        gateway.generate("model-a", LLMRequest(contents="hi"))
        assert sleeps == []


class TestRequestShaping:
    def test_text_requests_get_high_output_budget(self):
        adapter = ScriptedAdapter("ok")
        gateway, _ = make_gateway(adapter)
        request = LLMRequest(contents="hi")

        gateway.generate("model-a", request)

        assert adapter.calls[0][1].max_output_tokens == HIGH_OUTPUT_TOKENS
        assert request.max_output_tokens is None

    def test_image_requests_are_left_alone(self):
        adapter = ScriptedAdapter("ok")
        gateway, _ = make_gateway(adapter)

        gateway.generate("image-model", LLMRequest(contents="draw", response_modalities=["TEXT", "IMAGE"]))

        assert adapter.calls[0][1].max_output_tokens is None


def test_adapter_only_needs_complete():
    class EchoAdapter:
        def complete(self, model, request):
            return LLMResponse(raw_text=f"{model}: {request.contents}")

    gateway, _ = make_gateway(EchoAdapter())

    assert gateway.generate("model-a", LLMRequest(contents="hi")).raw_text == "model-a: hi"
