"""Error taxonomy for the legal assistant.

Configuration and input errors surface to the caller immediately. Upstream
errors are recovered locally during retrieval and ingestion batches and only
propagate from final answer generation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lawbot.models import IngestionReport


class LawBotError(Exception):
    """Base class for all application errors."""


class ConfigurationError(LawBotError):
    """Required settings or credentials are absent.

    Attributes:
        missing: Names of the missing or invalid settings.
    """

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            "Environment configuration is invalid: " + "; ".join(self.missing)
        )


class UpstreamUnavailable(LawBotError):
    """An external service (embedding, index, completion) failed or timed out."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"[{service}] {message}")


class InvalidInput(LawBotError):
    """The caller supplied input that cannot be processed."""


class PartialIngestionFailure(LawBotError):
    """One or more ingestion batches failed while the run itself completed."""

    def __init__(self, report: "IngestionReport"):
        self.report = report
        super().__init__(
            f"Ingestion completed with {len(report.errors)} failed batch(es): "
            f"{report.total_indexed}/{report.total_chunks} chunks indexed"
        )


class IngestionInProgress(LawBotError):
    """Another ingestion run is already mutating the index."""
