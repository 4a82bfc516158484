"""
git-agent: git workflows powered by a remote git assistant actor.

Session lifecycle, streaming transcript reducer and actor error classifier
for the Theater-hosted git-chat-assistant.
"""

__version__ = "1.0.4"

from git_agent.client import AsyncGitAgent
from git_agent.decoder import StreamEvent, decode_frame
from git_agent.error_parser import ErrorKind, ErrorReport, classify_error, format_actor_error
from git_agent.errors import (
    GitAgentError,
    ProtocolError,
    RejectedError,
    RepositoryError,
    SetupError,
    TransportError,
    WorkflowError,
)
from git_agent.models.message import Message
from git_agent.session import Session, SessionManager
from git_agent.store import MessageStore

__all__ = [
    "AsyncGitAgent",
    "ErrorKind",
    "ErrorReport",
    "GitAgentError",
    "Message",
    "MessageStore",
    "ProtocolError",
    "RejectedError",
    "RepositoryError",
    "Session",
    "SessionManager",
    "SetupError",
    "StreamEvent",
    "TransportError",
    "WorkflowError",
    "classify_error",
    "decode_frame",
    "format_actor_error",
]
