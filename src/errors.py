"""Classified failures for a digest run."""


class DigestError(Exception):
    """Base class for every failure that aborts a digest run."""

    kind = "digest"


class ValidationError(DigestError):
    """Raised when the pipeline input is rejected before any external call."""

    kind = "validation"


class UpstreamCallError(DigestError):
    """Raised when a mail or text-generation call fails or times out.

    ``operation`` names the failing collaborator: ``mail_search``,
    ``mail_send`` or ``text_generation``.
    """

    kind = "upstream_call"

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class MalformedResponseError(DigestError):
    """Raised when an upstream response cannot be interpreted at all."""

    kind = "malformed_response"
