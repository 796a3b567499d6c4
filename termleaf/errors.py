"""
Exception classes for termleaf.

All termleaf exceptions inherit from TermleafError, so callers can catch
every library error in one place.

NavigationBoundary is not an exception. Navigation operations return it
when a scroll or jump runs into the edge of the document or chapter.

Example:
    >>> result = paginator.scroll(1)
    >>> if isinstance(result, NavigationBoundary):
    ...     print("End of book")
"""

from dataclasses import dataclass


class TermleafError(Exception):
    """
    Base exception for all termleaf errors.
    """

    pass


class ContractViolation(TermleafError, ValueError):
    """
    Raised when document or viewport input breaks an invariant.

    Inconsistent block offsets, ranges outside a chapter and negative
    viewport dimensions all end up here. It is never recovered locally.
    """

    pass


class ImageDecodeFailure(TermleafError):
    """
    Raised by the image encoders when image bytes cannot be decoded.

    The renderer catches it, logs a warning and draws a placeholder.
    """

    def __init__(self, resource_id, reason):
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Cannot decode image {resource_id!r}: {reason}")


class CapabilityMismatch(TermleafError):
    """
    Raised when the requested graphics protocol is not supported by the terminal.
    """

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Graphics protocol {requested} requested but terminal supports {available}"
        )


class ConfigurationError(TermleafError, ValueError):
    """
    Raised for invalid settings.

    Example:
        >>> Settings(margin=-1)
        ConfigurationError: margin must be between 0 and 20, got -1
    """

    pass


class InvalidTransition(TermleafError):
    """Raised when the selection state machine is driven from the wrong mode."""

    pass


DOCUMENT_START = "document-start"
DOCUMENT_END = "document-end"
CHAPTER_END = "chapter-end"


@dataclass(frozen=True)
class NavigationBoundary:
    """Returned by navigation when it cannot move past an edge."""

    edge: str
    chapter: int

    @property
    def message(self):
        if self.edge == DOCUMENT_END:
            return "End of book"
        if self.edge == DOCUMENT_START:
            return "Beginning of book"
        return "End of chapter"
