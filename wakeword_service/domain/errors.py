"""Named errors reported back to callers of the control channel."""


class ServiceError(Exception):
    """Base class for errors that complete a command with a named failure."""

    code: str = "ServiceError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class UnsupportedDetector(ServiceError):
    code = "UnsupportedDetector"


class InvalidConfiguration(ServiceError):
    code = "InvalidConfiguration"


class UnreachableConfiguration(ServiceError):
    code = "UnreachableConfiguration"


class AlreadyRunning(ServiceError):
    code = "AlreadyRunning"


class NoActiveSession(ServiceError):
    code = "NoActiveSession"


class NotRunning(ServiceError):
    code = "NotRunning"


class UnknownCommand(ServiceError):
    code = "UnknownCommand"


class InvalidCommand(ServiceError):
    code = "InvalidCommand"


class NotBound(ServiceError):
    code = "NotBound"
