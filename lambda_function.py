"""AWS Lambda handler for the host form to Notion calendar pipeline."""
import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

from pipeline.config import PipelineConfig
from pipeline.runner import PipelineRunner
from processor.errors import ConfigurationError
from schema_guard.guard import PipelineHealth

# Attributes every LogRecord has; anything else came in through `extra`
RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

# Latches live as long as the warm container
HEALTH = PipelineHealth()

ACTIONS = ('sync', 'deadlines', 'key_reminders')


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def summarize(action: str, result: Any) -> Dict[str, Any]:
    """
    Turn a job result into response statistics.

    Args:
        action: Job that ran
        result: Its return value; None when the job was skipped or halted by
            a schema mismatch

    Returns:
        JSON-serializable statistics
    """
    if result is None:
        return {'halted': True}

    if action == 'sync':
        return {
            'rows_selected': result.selected,
            'events_imported': len(result.imported),
            'events_failed': len(result.failures),
            'failures': [
                {
                    'row_number': failure.row_number,
                    'event_name': failure.event_name,
                    'stage': failure.stage,
                    'correlation_id': failure.correlation_id,
                    'last_state': failure.last_state.value if failure.last_state else None
                }
                for failure in result.failures
            ]
        }

    if action == 'deadlines':
        return {
            'categories_pinged': [report.category for report in result],
            'events_pinged': sum(
                len(records) for report in result for records in report.matches.values()
            )
        }

    return {
        'locations': {location: len(records) for location, records in result.items()}
    }


def lambda_handler(event: Optional[Dict[str, Any]], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    EventBridge schedules invoke this with {"action": "sync"} every half hour
    and with "deadlines" and "key_reminders" once a day.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    start_time = time.time()
    action = (event or {}).get('action', 'sync')

    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    if action not in ACTIONS:
        logger.error(f"Unknown action '{action}'")
        return {
            'statusCode': 400,
            'body': json.dumps({
                'message': f"Unknown action '{action}'",
                'actions': list(ACTIONS)
            })
        }

    logger.info(
        "Lambda execution started",
        extra={'action': action, 'timeout_seconds': config.timeout_seconds}
    )

    try:
        runner = PipelineRunner.from_config(config, HEALTH)
        job = {
            'sync': runner.run_sync,
            'deadlines': runner.run_deadlines,
            'key_reminders': runner.run_key_reminders,
        }[action]
        result = asyncio.run(job())

        duration = time.time() - start_time
        statistics = summarize(action, result)
        statistics['duration_seconds'] = round(duration, 2)

        logger.info(
            "Lambda execution completed",
            extra={'action': action, 'statistics': statistics}
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': f"{action} completed" if result is not None else f"{action} halted",
                'statistics': statistics
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'action': action,
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': f"{action} failed",
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
