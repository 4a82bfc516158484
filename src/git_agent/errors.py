"""
git-agent error types.

Every failure the session layer raises carries a short machine code plus a
human-readable message that has already been through the error classifier.
"""

from typing import Any, Optional


class GitAgentError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class SetupError(GitAgentError):
    """The session could not be established."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("setup_error", message, details)


class WorkflowError(GitAgentError):
    """The actor refused to start its workflow."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("workflow_error", message, details)


class RejectedError(GitAgentError):
    """The actor refused a user message."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("rejected", message, details)


class ProtocolError(GitAgentError):
    """The actor answered with a response shape outside the expected set."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("protocol_error", message, details)


class TransportError(GitAgentError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)


class RepositoryError(GitAgentError):
    def __init__(self, message: str):
        super().__init__("repository_error", message)
