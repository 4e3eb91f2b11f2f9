"""
Domain error taxonomy shared by services, the resolver and the dispatcher
"""


class TaskBotError(Exception):
    """Base class for every error the bot turns into a chat reply"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidArgument(TaskBotError):
    """Malformed or missing command parameters"""


class EmptyInput(InvalidArgument):
    def __init__(self, message: str = "Empty message"):
        super().__init__(message)


class NotFound(TaskBotError):
    """Referenced user/task/order/rate does not exist"""


class PermissionDenied(TaskBotError):
    def __init__(self, message: str = "Insufficient permissions for this command"):
        super().__init__(message)


class UpstreamUnavailable(TaskBotError):
    """Classifier or messaging transport failure"""


class PersistenceFailure(TaskBotError):
    """Repository or cache error"""
