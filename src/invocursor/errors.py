"""Exception hierarchy for Invocursor.

DOM targets that cannot be found are not exceptions: the step executor
reports them as failed step results so the remaining plan keeps running.
"""


class InvocursorError(Exception):
    """Base class for all Invocursor errors."""


class PlannerError(InvocursorError):
    """The planner backend could not be reached or returned an error."""


class ParseError(InvocursorError):
    """The planner returned text that could not be turned into a plan."""


class NoValidPlan(ParseError):
    """No JSON array could be extracted from plain-plan output."""

    def __init__(self, message: str = "No valid plan in response"):
        super().__init__(message)


class UnparsablePlanResponse(ParseError):
    """Smart-chat output failed every parse attempt."""

    def __init__(self, message: str = "Could not parse planner response"):
        super().__init__(message)


class ConfigNotFoundError(InvocursorError):
    """The requested page/element configuration does not exist."""

    def __init__(self, config_name: str):
        self.config_name = config_name
        super().__init__(f"Config not found: {config_name}")


class ConfigInvalidError(InvocursorError):
    """A configuration document exists but cannot be read or validated."""

    def __init__(self, config_name: str, detail: str = ""):
        self.config_name = config_name
        self.detail = detail
        super().__init__(f"Config is invalid: {config_name}")


class RunnerBusyError(InvocursorError):
    """A plan run is already active for this widget."""


class InvalidRunTransition(InvocursorError):
    """A runner control was invoked from a state that does not allow it."""


class ApiRequestError(InvocursorError):
    """The Invocursor server rejected or failed a widget request."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)
