"""Error taxonomy for the host form sync pipeline."""
import json
from typing import List, Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError):
    """Raised when required configuration is missing or malformed."""


class SchemaMismatchError(PipelineError):
    """
    Raised when a live external schema differs from its bundled snapshot.

    Fatal to the current run only. The runner latches the alert so the same
    unresolved mismatch is reported once.
    """

    source = 'unknown'

    def __init__(self, diff):
        self.diff = diff
        super().__init__(
            f"{self.source} schema mismatch: "
            f"{json.dumps(diff.to_dict(), sort_keys=True)}"
        )


class FormSchemaMismatchError(SchemaMismatchError):
    """The host form spreadsheet columns changed."""

    source = 'form'


class StoreSchemaMismatchError(SchemaMismatchError):
    """The Notion calendar database properties changed."""

    source = 'store'


class ValidationError(PipelineError):
    """A single host form row could not be turned into a calendar record."""

    def __init__(self, event_name: str, issues: List[str]):
        self.event_name = event_name
        self.issues = list(issues)
        lines = '\n'.join(f"  {issue}" for issue in self.issues)
        super().__init__(f"Event creation failed for '{event_name}':\n{lines}")


class UploadError(PipelineError):
    """Creating the calendar record or its hosted event page failed."""

    def __init__(
        self,
        stage: str,
        event_name: str,
        cause: Exception,
        parent_url: Optional[str] = None,
        last_state=None
    ):
        self.stage = stage
        self.event_name = event_name
        self.cause = cause
        self.parent_url = parent_url
        # UploadState the record had reached before the failed call
        self.last_state = last_state
        super().__init__(
            f"Failed to create {stage} page for '{event_name}': {cause}"
        )
