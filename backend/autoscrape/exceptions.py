"""Exception hierarchy for the automation core."""


class AutomationError(Exception):
    """Base class for all automation errors."""


# Query API boundary

class QueryError(AutomationError):
    """Any failure talking to the Stash query API."""


class NetworkError(QueryError):
    """Transport-level failure (connection refused, bad status, invalid body)."""


class QueryTimeoutError(QueryError, TimeoutError):
    """No response from the query API within the configured deadline."""


class ApiError(QueryError):
    """The API answered but reported errors in its payload."""

    def __init__(self, messages: list[str]):
        self.messages = list(messages)
        super().__init__(f"GraphQL errors: {', '.join(self.messages)}")


# Detection

class DetectionError(AutomationError):
    """A single detection strategy failed. Never fatal: the chain continues."""


# Interactive surface

class StepTimeoutError(AutomationError, TimeoutError):
    """An awaited surface condition did not hold within its timeout."""


class SurfaceError(AutomationError):
    """A surface command could not be carried out (control missing, no match)."""


class StructuralError(AutomationError):
    """A structurally required step failed; the session cannot continue."""


# Control flow signals

class UserCancelled(AutomationError):
    """The operator cancelled the running session."""


class UserSkipped(AutomationError):
    """The operator asked to skip the current provider."""


class SessionConflictError(AutomationError):
    """A session is already active for this scene."""

    def __init__(self, scene_id: str):
        self.scene_id = scene_id
        super().__init__(f"Automation already in progress for scene {scene_id}")


# Stores

class ConfigError(AutomationError):
    """Unknown or invalid persisted configuration key/value."""


class HistoryImportError(AutomationError):
    """History import document was malformed or held no valid entries."""
