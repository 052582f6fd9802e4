"""
Service Exceptions

Typed failures raised by the core so callers can tell "the model is down"
apart from "the model kept producing unsafe SQL".
"""
from typing import Optional


class DataSenseError(Exception):
    """Base class for all core failures"""
    pass


class InferenceUnavailableError(DataSenseError):
    """Inference service unreachable or returned a non-success status"""
    pass


class InferenceTimeoutError(InferenceUnavailableError):
    """Inference call exceeded the configured timeout"""
    pass


class MalformedResponseError(DataSenseError):
    """Inference service answered, but not in the expected shape"""
    pass


class UnsafeStatementError(DataSenseError):
    """Generated SQL failed the safety gate, including after one repair attempt"""

    def __init__(self, message: str, reason: Optional[str] = None, last_statement: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.last_statement = last_statement


class BrokerUnavailableError(DataSenseError):
    """Work queue could not accept the envelope"""
    pass


class CacheUnavailableError(DataSenseError):
    """Cache write failed"""
    pass


class ConversationNotFoundError(DataSenseError):
    """No active conversation with the given id"""
    pass
