"""
Protocol constants shared by the decoder, the session manager and the UI.
"""

END_TURN = "end_turn"


class Role:
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"
    ERROR = "error"


class MessageStatus:
    PENDING = "pending"
    COMPLETE = "complete"


class TerminalState:
    ACTIVE = "active"
    EXITED = "exited"
    ERRORED = "errored"


class SessionMode:
    # workflow: the actor runs a task and exits on completion
    WORKFLOW = "workflow"
    CHAT = "chat"


class StreamEventType:
    """Semantic events produced by the stream decoder."""
    ASSISTANT_TEXT = "assistant_text"
    TOOL_USE = "tool_use"
    USER_ECHO = "user_echo"
    TURN_END = "turn_end"
    TURN_CONTINUE = "turn_continue"
    DECODE_ERROR = "decode_error"


class InboxItemType:
    """Items delivered into a session's inbox by the transport."""
    FRAME = "frame"
    ACTOR_EVENT = "actor_event"
    ACTOR_ERROR = "actor_error"
    ACTOR_EXIT = "actor_exit"
    NOTICE = "notice"


class ControlRequest:
    GET_CHAT_STATE_ACTOR_ID = "GetChatStateActorId"
    START_CHAT = "StartChat"
    ADD_MESSAGE = "AddMessage"


class ControlResponse:
    CHAT_STATE_ACTOR_ID = "ChatStateActorId"
    SUCCESS = "Success"
    ERROR = "Error"


class FrameType:
    CHAT_MESSAGE = "chat_message"
