"""\
termleaf: a terminal reader engine that reflows documents into a resizable,
annotatable view and draws their images with whichever graphics protocol the
terminal offers.
"""

__version__ = "0.3.0"
__build_time__ = "2026-10-18 09:12:44"
__license__ = "MIT"
__author__ = "termleaf contributors"
__email__ = ""
__url__ = "https://github.com/termleaf/termleaf"


from termleaf.errors import (
    TermleafError,
    ContractViolation,
    ImageDecodeFailure,
    CapabilityMismatch,
    ConfigurationError,
    InvalidTransition,
    NavigationBoundary,
)
from termleaf.document import (
    Run,
    Paragraph,
    Heading,
    ListItem,
    CodeBlock,
    ImageBlock,
    Chapter,
    Document,
    LogicalPosition,
    LogicalRange,
)
from termleaf.reflow import ViewportState, LayoutSettings, VisualLine, reflow
from termleaf.graphics import GraphicsProtocol, TerminalCapabilities
from termleaf.session import ReaderSession

__all__ = [
    "TermleafError",
    "ContractViolation",
    "ImageDecodeFailure",
    "CapabilityMismatch",
    "ConfigurationError",
    "InvalidTransition",
    "NavigationBoundary",
    "Run",
    "Paragraph",
    "Heading",
    "ListItem",
    "CodeBlock",
    "ImageBlock",
    "Chapter",
    "Document",
    "LogicalPosition",
    "LogicalRange",
    "ViewportState",
    "LayoutSettings",
    "VisualLine",
    "reflow",
    "GraphicsProtocol",
    "TerminalCapabilities",
    "ReaderSession",
]
