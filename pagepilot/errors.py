"""
Exceptions for PagePilot.

Runtime data problems (bad rows, corrupt state, failed writes) never raise;
they degrade to conservative defaults. These exceptions are reserved for
programmer errors at the library edge.
"""


class PagePilotError(Exception):
    """Base class for PagePilot errors."""


class ConfigurationError(PagePilotError):
    """A component was constructed with settings it cannot honour."""
