"""
Error taxonomy for the customization flow.

Validation errors are local and re-present the current state. Fetch failures
make a step inapplicable, the same as an option set that comes back empty
(StepOutcome.applicable is False; nothing is raised for that case).
StoreClosed blocks the entry transition. None of these is fatal to the process.
"""


class FlowError(Exception):
    """Base class for flow engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FlowValidationError(FlowError):
    """Customer input that cannot be accepted in the current state."""


class LimitExceeded(FlowValidationError):
    """Adding a flavor would go past the size's max_flavors."""

    def __init__(self, max_flavors: int):
        super().__init__(f"Máximo de {max_flavors} sabores")
        self.max_flavors = max_flavors


class StoreClosed(FlowError):
    """The store is not accepting orders."""

    def __init__(self, message: str = "Estabelecimento fechado"):
        super().__init__(message)


class FetchFailure(FlowError):
    """A catalog collaborator raised while fetching data."""


class InvalidTransition(FlowError):
    """An operation was requested in a state that does not accept it."""

    def __init__(self, operation: str, state: str):
        super().__init__(f"Cannot {operation} while in state '{state}'")
        self.operation = operation
        self.state = state
