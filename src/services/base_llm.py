import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import ValidationError

from models.domain import LLMProvider, Sentiment
from models.schemas import (
    AdditionalAnswer,
    AnalysisConfiguration,
    BrandAnalysis,
    Citation,
    ProviderResult,
    TokenUsage,
)
from prompts import load_prompt
from services.errors import ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw: Any = None

    @property
    def usage(self) -> TokenUsage:
        return TokenUsage(input_tokens=self.input_tokens, output_tokens=self.output_tokens)


def load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Analysis output is not valid JSON: {e}") from e


def parse_brand_entries(entries: Any) -> List[BrandAnalysis]:
    """Validate each brand entry, skipping the ones the model got wrong.

    Only a missing list is fatal; known brands whose entry was skipped are
    filled back in by ``ensure_known_brands``.
    """
    if not isinstance(entries, list):
        raise ParseError("Analysis output does not contain a list of brands")
    analyses = []
    for entry in entries:
        try:
            analyses.append(BrandAnalysis.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping malformed brand entry {entry!r}: {e.error_count()} error(s)")
    return analyses


def parse_brands_object(text: str) -> List[BrandAnalysis]:
    data = load_json(text)
    if not isinstance(data, dict) or "brands" not in data:
        raise ParseError('Analysis output is missing the "brands" key')
    return parse_brand_entries(data["brands"])


def ensure_known_brands(analyses: List[BrandAnalysis], known_brands: List[str]) -> List[BrandAnalysis]:
    """Return known brands first, each exactly once, followed by discovered brands.

    Known brands the model left out are reported as not mentioned. Discovered
    brands keep the model's order and are not de-duplicated.
    """
    known_keys = {brand.lower() for brand in known_brands}
    by_key = {}
    discovered = []
    for analysis in analyses:
        key = analysis.brand_name.strip().lower()
        if key in known_keys:
            by_key.setdefault(key, analysis)
        else:
            discovered.append(analysis)

    completed = []
    for brand in known_brands:
        entry = by_key.get(brand.lower())
        if entry is None:
            entry = BrandAnalysis(brand_name=brand, mentions=0, sentiment=Sentiment.NOT_MENTIONED)
        completed.append(entry)
    return completed + discovered


class BaseAnalysisAdapter(ABC):
    """Runs the primary, brand-analysis and auxiliary-question calls for one provider.

    ``analyze`` raises on a failed primary or auxiliary call and returns a full
    ``ProviderResult`` otherwise. A brand analysis that cannot be parsed is
    recorded on the result instead of raised, since retrying the same call
    will not repair the model's output shape.
    """

    provider: LLMProvider
    analysis_prompt_style: str
    initial_trace_type: str = "initial_prompt"

    def __init__(self, api_key: str, model: str, api_base: Optional[str] = None):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base or self.default_api_base()

    @abstractmethod
    def default_api_base(self) -> str:
        pass

    @property
    def analysis_model(self) -> str:
        return self.model

    @abstractmethod
    async def _complete(self, prompt: str, model: str, structured: bool = False) -> Completion:
        pass

    @abstractmethod
    def _parse_brand_analyses(self, text: str) -> List[BrandAnalysis]:
        pass

    def _primary_text(self, completion: Completion) -> str:
        return completion.text

    def _answer_text(self, completion: Completion) -> str:
        return completion.text

    def _extract_citations(self, raw: Any) -> Optional[List[Citation]]:
        return None

    def build_analysis_prompt(self, response: str, config: AnalysisConfiguration) -> str:
        mode = "broad" if config.broad_match else "exact"
        return load_prompt(
            f"brand_analysis_{mode}_{self.analysis_prompt_style}",
            client_name=config.client_name,
            competitors=config.competitors,
            brands=config.known_brands,
            response=response,
        )

    async def _answer_question(self, question: str, response: str) -> tuple[AdditionalAnswer, Completion]:
        prompt = load_prompt("additional_question", question=question, response=response)
        completion = await self._complete(prompt, self.analysis_model)
        return AdditionalAnswer(question=question, answer=self._answer_text(completion)), completion

    async def analyze(self, prompt: str, config: AnalysisConfiguration) -> ProviderResult:
        trace: List[dict] = []
        usage = TokenUsage()
        analysis_usage = TokenUsage()
        error = None

        primary = await self._complete(prompt, self.model)
        trace.append({"type": self.initial_trace_type, "data": primary.raw})
        usage += primary.usage
        response = self._primary_text(primary)
        citations = self._extract_citations(primary.raw)

        analysis = await self._complete(
            self.build_analysis_prompt(response, config), self.analysis_model, structured=True
        )
        trace.append({"type": "brand_analysis", "data": analysis.raw})
        analysis_usage += analysis.usage
        try:
            brand_analyses = ensure_known_brands(self._parse_brand_analyses(analysis.text), config.known_brands)
        except ParseError as e:
            logger.error(f"{self.provider.value} brand analysis could not be parsed: {e}")
            brand_analyses = []
            error = f"Brand analysis failed: {e}"

        answered = await asyncio.gather(
            *(self._answer_question(question, response) for question in config.additional_questions)
        )
        additional_answers = []
        for answer, completion in answered:
            trace.append({"type": "additional_question", "question": answer.question, "data": completion.raw})
            usage += completion.usage
            additional_answers.append(answer)

        logger.debug(
            f"{self.provider.value} finished prompt with {len(brand_analyses)} brands, "
            f"{len(additional_answers)} answers"
        )
        return ProviderResult(
            provider=self.provider,
            response=response,
            brand_analyses=brand_analyses,
            additional_answers=additional_answers,
            raw_response=json.dumps(trace, indent=2, default=str),
            error=error,
            citations=citations,
            token_usage=usage,
            analysis_token_usage=analysis_usage,
        )
