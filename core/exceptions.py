from typing import Optional


class TaskifyError(Exception):
    pass


class ConfigError(TaskifyError):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


class TaskValidationError(TaskifyError):
    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


# ---------- storage ----------
class StoreError(TaskifyError):
    """The backend rejected the request or answered with something unreadable."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectionFailure(StoreError):
    """Backend unreachable: DNS, refused connection, timeout, dropped stream."""


class NotFound(StoreError):
    pass


# ---------- calendar ----------
class CalendarError(TaskifyError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CalendarAuthError(CalendarError):
    pass
