from __future__ import annotations


class HookpilotError(RuntimeError):
    """Base class for failures that abort a run or a single tool call."""


class ConfigurationError(HookpilotError):
    pass


class ValidationError(HookpilotError):
    pass


class InvalidRefNameError(ValidationError):
    pass


class PermissionDeniedError(HookpilotError):
    pass


class UnsupportedEventError(HookpilotError):
    pass


class RemoteError(HookpilotError):
    """A hosting-platform API call or a git invocation failed."""


class BranchNotFoundError(HookpilotError):
    pass


class BranchSetupError(HookpilotError):
    """The working tree ended up on a different branch than expected."""
