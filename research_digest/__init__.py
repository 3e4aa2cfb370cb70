"""Web search research pipeline producing context-budgeted digests."""

from .config.settings import get_version

__version__ = get_version()
