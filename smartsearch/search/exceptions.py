"""
Exceptions raised by the smart search pipeline
"""


class SmartSearchError(Exception):
    """Base class for smart search errors"""


class RemoteSearchUnavailable(SmartSearchError):
    """The remote semantic search could not produce a usable response"""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class SearchInvariantError(SmartSearchError):
    """A result set broke the record id invariants"""


class InterpretationError(SmartSearchError):
    """Server-side interpretation failure with the HTTP status to report"""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code
