"""
Error taxonomy for the visual overlay pipeline.

- ConfigurationError: a required credential is missing. Fatal, raised before any work starts.
- TransportError: an HTTP call to a service failed (upload, submit, poll).
- ServiceError: the service answered but reported its own failure.
- SegmentEnrichmentFailure: one segment could not be enriched. Recorded, never raised by the pipeline.
"""
from typing import Optional


class BRollError(Exception):
    """Base class for all errors raised by the broll package."""


class ConfigurationError(BRollError):
    pass


class TransportError(BRollError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServiceError(BRollError):
    pass


class SegmentEnrichmentFailure(BRollError):
    def __init__(self, index: int, stage: str, message: str):
        super().__init__(f"Segment {index + 1} {stage} failed: {message}")
        self.index = index
        self.stage = stage
        self.message = message
