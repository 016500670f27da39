"""
Run the pipeline as a long-lived process instead of on Lambda.

The sync runs every SYNC_INTERVAL_MINUTES and the deadline and key reminder
checks every DEADLINE_INTERVAL_HOURS. Installed as the `host-form-pipeline`
command:

    host-form-pipeline

Reads the same environment variables as the Lambda function. Only run one of
these per spreadsheet alongside the Lambda schedules; syncs from both share
the lease in the sheet's "Sync Lock" cell.
"""
import asyncio
import logging
from typing import Optional

from lambda_function import setup_logging
from pipeline.config import PipelineConfig
from pipeline.runner import PipelineRunner

logger = logging.getLogger(__name__)


def main(config: Optional[PipelineConfig] = None) -> None:
    config = config or PipelineConfig.from_env()
    setup_logging(config.log_level)

    logger.info(
        f"Starting pipeline: sync every {config.sync_interval_minutes} minutes, "
        f"daily checks every {config.deadline_interval_hours} hours"
    )
    runner = PipelineRunner.from_config(config)
    try:
        asyncio.run(runner.run_forever())
    except KeyboardInterrupt:
        logger.info("Pipeline stopped")


if __name__ == '__main__':
    main()
