"""Exceptions raised by the exam engine."""


class SabiprepError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(SabiprepError):
    """A session was configured with numbers the question pool cannot meet."""


class SessionNotFound(SabiprepError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class NoQuestionsAvailable(SabiprepError):
    def __init__(self, session_id: str):
        super().__init__(f"No questions available for session {session_id}")
        self.session_id = session_id


class InvalidTransition(SabiprepError):
    """An operation was issued in a state that does not allow it."""

    def __init__(self, action: str, state):
        super().__init__(f"Cannot {action} while session is {state.value}")
        self.action = action
        self.state = state


class FinalizationError(SabiprepError):
    """The final result could not be persisted; the attempt can be retried."""
