"""Error taxonomy shared by the pipeline stages.

Recoverable errors (``TransportError``, ``ParseError``) are handled at the
smallest unit of work: one source, one article, one notification batch.
``ContractViolation`` and ``ConfigurationError`` abort the run.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base error for the ingestion-and-triage pipeline."""


class TransportError(PipelineError):
    """Network failure, timeout or non-success HTTP status."""


class ParseError(PipelineError):
    """Unparsable feed document or malformed backend JSON."""


class ContractViolation(PipelineError):
    """A collaborator broke an ordering/length contract the run depends on."""


class ConfigurationError(PipelineError):
    """Missing credential or connection string."""
