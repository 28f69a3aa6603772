"""Run a brand visibility analysis from a JSON configuration file."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import settings
from models.domain import TaskStatus, WorkUnit
from models.schemas import AnalysisConfiguration
from services.errors import ConfigurationError
from services.metrics_service import calculate_run_summary
from workers.pipeline import run_analysis

logger = logging.getLogger(__name__)


def load_configuration(path: Path) -> AnalysisConfiguration:
    with open(path, "r", encoding="utf-8") as f:
        return AnalysisConfiguration.model_validate(json.load(f))


class ProgressLogger:
    def __init__(self):
        self._seen = {}

    def __call__(self, tasks: List[WorkUnit]) -> None:
        done = sum(1 for task in tasks if task.status.is_terminal)
        for task in tasks:
            state = (task.status, task.retries)
            if self._seen.get(task.id) == state:
                continue
            self._seen[task.id] = state
            if task.status == TaskStatus.ERROR:
                logger.error(f"[{done}/{len(tasks)}] {task.description}: {task.error}")
            elif task.retries:
                logger.warning(f"[{done}/{len(tasks)}] {task.description}: retry {task.retries}")
            else:
                logger.info(f"[{done}/{len(tasks)}] {task.description}: {task.status.value}")


def build_report(config: AnalysisConfiguration, results) -> dict:
    return {
        "results": [result.to_json_dict() for result in results],
        "summary": calculate_run_summary(results, config.client_name).to_json_dict(),
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a brand visibility analysis")
    parser.add_argument("config", type=Path, help="Path to the JSON configuration")
    parser.add_argument("--output", type=Path, help="Write the report here instead of stdout")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level)
    config = load_configuration(args.config)

    try:
        results = asyncio.run(run_analysis(config, ProgressLogger()))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    report = json.dumps(build_report(config, results), indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(report, encoding="utf-8")
        logger.info(f"Report written to {args.output}")
    else:
        print(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
