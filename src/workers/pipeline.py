"""Prompt x provider fan-out for a brand visibility run."""

import asyncio
import json
import logging
import traceback
from typing import Awaitable, Callable, List, Optional

from config import settings
from models.domain import LLMProvider, TaskStatus, WorkUnit, describe_work_unit, work_unit_id
from models.schemas import AnalysisConfiguration, AnalysisResult, ProviderResult
from services.base_llm import BaseAnalysisAdapter
from services.clients import LLMClients, initialize_clients
from services.remote_llms import create_adapter
from services.retry import retry_with_backoff
from workers.task_tracker import ProgressCallback, TaskTracker

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[LLMProvider, LLMClients, AnalysisConfiguration], BaseAnalysisAdapter]


def build_work_units(config: AnalysisConfiguration) -> List[WorkUnit]:
    return [
        WorkUnit(
            id=work_unit_id(prompt_index, provider),
            description=describe_work_unit(prompt, provider, config.models.get(provider)),
        )
        for prompt_index, prompt in enumerate(config.prompts)
        for provider in config.providers
    ]


def serialize_exception(error: BaseException) -> str:
    return json.dumps(
        {
            "name": type(error).__name__,
            "message": str(error),
            "status_code": getattr(error, "status_code", None),
            "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        },
        indent=2,
    )


def error_result(provider: LLMProvider, error: BaseException) -> ProviderResult:
    return ProviderResult(
        provider=provider,
        response="",
        brand_analyses=[],
        additional_answers=[],
        error=str(error) or "An unknown error occurred.",
        raw_response=serialize_exception(error),
    )


class AnalysisOrchestrator:
    def __init__(
        self,
        adapter_factory: AdapterFactory = create_adapter,
        retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.adapter_factory = adapter_factory
        self.retries = settings.analysis_max_retries if retries is None else retries
        self.base_delay = settings.analysis_retry_base_delay if base_delay is None else base_delay
        self.sleep = sleep

    async def run(
        self,
        config: AnalysisConfiguration,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[AnalysisResult]:
        clients = initialize_clients(config)
        adapters = {provider: self.adapter_factory(provider, clients, config) for provider in config.providers}

        tracker = TaskTracker(on_progress)
        tracker.initialize(build_work_units(config))
        logger.info(
            f"Starting analysis for {config.client_name}: "
            f"{len(config.prompts)} prompt(s) x {len(config.providers)} provider(s)"
        )

        results: List[AnalysisResult] = []
        for prompt_index, prompt in enumerate(config.prompts):
            provider_results = await asyncio.gather(
                *(
                    self._run_unit(tracker, adapters[provider], provider, prompt_index, prompt, config)
                    for provider in config.providers
                )
            )
            results.append(AnalysisResult(prompt=prompt, provider_responses=list(provider_results)))
            logger.info(f"Finished prompt {prompt_index + 1}/{len(config.prompts)}")

        return results

    async def _run_unit(
        self,
        tracker: TaskTracker,
        adapter: BaseAnalysisAdapter,
        provider: LLMProvider,
        prompt_index: int,
        prompt: str,
        config: AnalysisConfiguration,
    ) -> ProviderResult:
        task_id = work_unit_id(prompt_index, provider)
        tracker.transition(task_id, TaskStatus.IN_PROGRESS)

        def on_retry(error: BaseException, attempt: int) -> None:
            logger.warning(f"Attempt {attempt} failed for task {task_id}. Retrying... ({error})")
            tracker.transition(task_id, TaskStatus.IN_PROGRESS, error=str(error), retries=attempt)

        try:
            result = await retry_with_backoff(
                lambda: adapter.analyze(prompt, config),
                retries=self.retries,
                on_retry=on_retry,
                base_delay=self.base_delay,
                sleep=self.sleep,
            )
        except Exception as e:
            result = error_result(provider, e)
            logger.error(f"Task {task_id} failed: {result.error}")
            tracker.transition(task_id, TaskStatus.ERROR, error=result.error)
            return result

        if result.error:
            tracker.transition(task_id, TaskStatus.ERROR, error=result.error)
        else:
            tracker.transition(task_id, TaskStatus.COMPLETED)
        return result


async def run_analysis(
    config: AnalysisConfiguration,
    on_progress: Optional[ProgressCallback] = None,
) -> List[AnalysisResult]:
    return await AnalysisOrchestrator().run(config, on_progress)
