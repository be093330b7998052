"""Pytest configuration and fixtures."""

import os

import pytest

from proposal_agent.adapters.gateway import LLMGateway
from proposal_agent.prompts import PromptLibrary
from proposal_agent.settings import PipelineSettings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Keep the suite offline and deterministic."""
    os.environ["GEMINI_API_KEY"] = "test-gemini-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ.pop("PROPOSAL_API_DELAY", None)


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings(api_delay=0.0)


@pytest.fixture
def prompts(settings: PipelineSettings) -> PromptLibrary:
    return PromptLibrary(settings.prompts_dir)


@pytest.fixture
def sleeps() -> list:
    """Records every sleep the gateway would have taken."""
    return []


@pytest.fixture
def make_agent(settings, prompts, sleeps):
    def factory(agent_cls, adapter, logs=None, agent_settings=None, **kwargs):
        active = agent_settings or settings
        gateway = LLMGateway(adapter, active, sleep=sleeps.append)
        on_log = logs.append if logs is not None else None
        return agent_cls(gateway, active, prompts, on_log=on_log, **kwargs)

    return factory
