from .extraction import EXTRACTION_TOOL_NAME, Citation, SearchExtraction
from .trace import Bundle, PageDigest, Result, Summary, Trace

__all__ = [
    "Bundle",
    "Citation",
    "EXTRACTION_TOOL_NAME",
    "PageDigest",
    "Result",
    "SearchExtraction",
    "Summary",
    "Trace",
]
