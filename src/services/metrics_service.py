from typing import Dict, List

from models.domain import LLMProvider, Sentiment
from models.schemas import AnalysisResult, RunSummary, SentimentCounts, TokenUsage


def calculate_run_summary(results: List[AnalysisResult], client_name: str) -> RunSummary:
    """Client mention total and sentiment counts over every brand entry of a run."""
    client_key = client_name.strip().lower()
    client_mentions = 0
    counts = {Sentiment.POSITIVE: 0, Sentiment.NEUTRAL: 0, Sentiment.NEGATIVE: 0}

    for result in results:
        for provider_result in result.provider_responses:
            for analysis in provider_result.brand_analyses:
                if analysis.brand_name.strip().lower() == client_key:
                    client_mentions += analysis.mentions
                if analysis.sentiment in counts:
                    counts[analysis.sentiment] += 1

    return RunSummary(
        client_mentions=client_mentions,
        sentiment_counts=SentimentCounts(
            positive=counts[Sentiment.POSITIVE],
            neutral=counts[Sentiment.NEUTRAL],
            negative=counts[Sentiment.NEGATIVE],
        ),
    )


def summarize_token_usage(results: List[AnalysisResult]) -> Dict[LLMProvider, TokenUsage]:
    totals: Dict[LLMProvider, TokenUsage] = {}
    for result in results:
        for provider_result in result.provider_responses:
            total = totals.get(provider_result.provider, TokenUsage())
            if provider_result.token_usage:
                total += provider_result.token_usage
            if provider_result.analysis_token_usage:
                total += provider_result.analysis_token_usage
            totals[provider_result.provider] = total
    return totals
