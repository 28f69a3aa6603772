import asyncio
import json

import pytest

from models.domain import LLMProvider, Sentiment, TaskStatus
from models.schemas import BrandAnalysis, ProviderResult
from services.errors import AuthenticationError, ConfigurationError, TransportError
from workers.pipeline import AnalysisOrchestrator, build_work_units, error_result, serialize_exception


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeAdapter:
    """Returns or raises per-call outcomes queued for its provider."""

    def __init__(self, provider, outcomes=None):
        self.provider = provider
        self.outcomes = list(outcomes or [])
        self.prompts = []

    async def analyze(self, prompt, config):
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, ProviderResult):
            return outcome
        return ProviderResult(
            provider=self.provider,
            response=f"{self.provider.value}: {prompt}",
            brand_analyses=[BrandAnalysis(brand_name="Travyk", mentions=1, sentiment=Sentiment.POSITIVE)],
        )


def _factory(adapters):
    def create(provider, clients, config):
        return adapters.setdefault(provider, FakeAdapter(provider))

    return create


@pytest.fixture
def two_provider_config(make_config):
    return make_config(
        providers=["gemini", "perplexity"],
        models={"gemini": "gemini-2.5-flash", "perplexity": "sonar"},
        apiKeys={"gemini": "g-key", "perplexity": "p-key"},
        prompts=["first prompt", "second prompt"],
    )


def test_build_work_units_is_prompt_major(two_provider_config):
    units = build_work_units(two_provider_config)

    assert [unit.id for unit in units] == [
        "prompt-0-gemini",
        "prompt-0-perplexity",
        "prompt-1-gemini",
        "prompt-1-perplexity",
    ]
    assert all(unit.status == TaskStatus.PENDING for unit in units)
    assert units[1].description == 'Analyzing "first prompt" with Perplexity (sonar)'


@pytest.mark.asyncio
async def test_results_follow_prompt_and_provider_order(two_provider_config):
    snapshots = []
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory({}), sleep=FakeSleep())

    results = await orchestrator.run(two_provider_config, snapshots.append)

    assert [r.prompt for r in results] == ["first prompt", "second prompt"]
    for result in results:
        assert [p.provider for p in result.provider_responses] == [LLMProvider.GEMINI, LLMProvider.PERPLEXITY]
    assert results[1].provider_responses[1].response == "perplexity: second prompt"

    final = snapshots[-1]
    assert len(final) == 4
    assert all(unit.status == TaskStatus.COMPLETED for unit in final)
    assert snapshots[0][0].status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_every_unit_gets_a_result_even_when_all_fail(two_provider_config):
    adapters = {
        LLMProvider.GEMINI: FakeAdapter(LLMProvider.GEMINI, [AuthenticationError("bad key", 401)] * 2),
        LLMProvider.PERPLEXITY: FakeAdapter(LLMProvider.PERPLEXITY, [ValueError("boom")] * 2),
    }
    snapshots = []
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), sleep=FakeSleep())

    results = await orchestrator.run(two_provider_config, snapshots.append)

    assert len(results) == 2
    for result in results:
        assert len(result.provider_responses) == 2
        for provider_result in result.provider_responses:
            assert provider_result.response == ""
            assert provider_result.brand_analyses == []
            assert provider_result.error
    assert results[0].provider_responses[1].error == "boom"
    assert all(unit.status == TaskStatus.ERROR for unit in snapshots[-1])


@pytest.mark.asyncio
async def test_one_failing_provider_does_not_affect_the_other(two_provider_config):
    adapters = {LLMProvider.PERPLEXITY: FakeAdapter(LLMProvider.PERPLEXITY, [ValueError("boom")])}
    snapshots = []
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), sleep=FakeSleep())

    results = await orchestrator.run(two_provider_config, snapshots.append)

    first = results[0].provider_responses
    assert first[0].error is None
    assert first[1].error == "boom"
    assert results[1].provider_responses[1].error is None
    statuses = {unit.id: unit.status for unit in snapshots[-1]}
    assert statuses["prompt-0-perplexity"] == TaskStatus.ERROR
    assert statuses["prompt-1-perplexity"] == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_transient_failures_are_retried_and_counted(make_config):
    adapters = {
        LLMProvider.GEMINI: FakeAdapter(
            LLMProvider.GEMINI,
            [TransportError("overloaded", status_code=503), TransportError("overloaded", status_code=503)],
        )
    }
    snapshots = []
    sleep = FakeSleep()
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), retries=2, base_delay=1.0, sleep=sleep)

    results = await orchestrator.run(make_config(), snapshots.append)

    assert results[0].provider_responses[0].error is None
    assert sleep.delays == [1.0, 2.0]
    history = [(s[0].status, s[0].retries) for s in snapshots]
    assert history == [
        (TaskStatus.PENDING, None),
        (TaskStatus.IN_PROGRESS, None),
        (TaskStatus.IN_PROGRESS, 1),
        (TaskStatus.IN_PROGRESS, 2),
        (TaskStatus.COMPLETED, 2),
    ]
    assert snapshots[2][0].error == "overloaded"
    assert snapshots[-1][0].error is None


@pytest.mark.asyncio
async def test_retries_exhausted_reports_last_error(make_config):
    last = TransportError("still overloaded", status_code=503)
    adapters = {
        LLMProvider.GEMINI: FakeAdapter(
            LLMProvider.GEMINI,
            [TransportError("overloaded", status_code=503), TransportError("overloaded", status_code=503), last],
        )
    }
    snapshots = []
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), retries=2, sleep=FakeSleep())

    results = await orchestrator.run(make_config(), snapshots.append)

    provider_result = results[0].provider_responses[0]
    assert provider_result.error == "still overloaded"
    assert json.loads(provider_result.raw_response)["status_code"] == 503
    final = snapshots[-1][0]
    assert final.status == TaskStatus.ERROR
    assert final.retries == 2
    assert final.error == "still overloaded"


@pytest.mark.asyncio
async def test_soft_analysis_error_marks_unit_failed_without_retry(make_config):
    soft = ProviderResult(provider=LLMProvider.GEMINI, response="text", error="Brand analysis failed: bad JSON")
    adapters = {LLMProvider.GEMINI: FakeAdapter(LLMProvider.GEMINI, [soft])}
    snapshots = []
    sleep = FakeSleep()
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), sleep=sleep)

    results = await orchestrator.run(make_config(), snapshots.append)

    assert results[0].provider_responses[0].response == "text"
    assert sleep.delays == []
    assert snapshots[-1][0].status == TaskStatus.ERROR
    assert snapshots[-1][0].error == "Brand analysis failed: bad JSON"
    assert snapshots[-1][0].retries is None


@pytest.mark.asyncio
async def test_missing_credential_fails_before_any_unit_starts(make_config):
    config = make_config(
        providers=["gemini", "perplexity"],
        models={"gemini": "gemini-2.5-flash", "perplexity": "sonar"},
        apiKeys={"gemini": "g-key"},
    )
    adapters = {}
    snapshots = []
    orchestrator = AnalysisOrchestrator(adapter_factory=_factory(adapters), sleep=FakeSleep())

    with pytest.raises(ConfigurationError, match="Perplexity API Key is missing."):
        await orchestrator.run(config, snapshots.append)

    assert snapshots == []
    assert adapters == {}


def test_error_result_serializes_exception():
    try:
        raise TransportError("overloaded", status_code=503)
    except TransportError as e:
        result = error_result(LLMProvider.GEMINI, e)
        details = json.loads(serialize_exception(e))

    assert result.error == "overloaded"
    assert result.brand_analyses == []
    assert details["name"] == "TransportError"
    assert details["status_code"] == 503
    assert "Traceback" in details["stack"]


def test_error_result_for_exception_without_message():
    result = error_result(LLMProvider.OPENAI, RuntimeError())
    assert result.error == "An unknown error occurred."


class RecordingAdapter:
    """Logs start and end of every call around a suspension point."""

    def __init__(self, provider, events):
        self.provider = provider
        self.events = events

    async def analyze(self, prompt, config):
        prompt_index = config.prompts.index(prompt)
        self.events.append(("start", prompt_index, self.provider))
        await asyncio.sleep(0.01)
        self.events.append(("end", prompt_index, self.provider))
        return ProviderResult(provider=self.provider, response=prompt)


@pytest.mark.asyncio
async def test_prompts_run_in_sequence_and_providers_concurrently(two_provider_config):
    events = []
    orchestrator = AnalysisOrchestrator(
        adapter_factory=lambda provider, clients, config: RecordingAdapter(provider, events),
        sleep=FakeSleep(),
    )

    await orchestrator.run(two_provider_config)

    for prompt_index in (0, 1):
        prompt_events = [(kind, provider) for kind, index, provider in events if index == prompt_index]
        first_end = next(i for i, (kind, _) in enumerate(prompt_events) if kind == "end")
        started_before_any_end = {provider for kind, provider in prompt_events[:first_end] if kind == "start"}
        assert started_before_any_end == {LLMProvider.GEMINI, LLMProvider.PERPLEXITY}

    last_prompt_0 = max(i for i, (_, index, _) in enumerate(events) if index == 0)
    first_prompt_1 = min(i for i, (_, index, _) in enumerate(events) if index == 1)
    assert last_prompt_0 < first_prompt_1
    assert len(events) == 8
