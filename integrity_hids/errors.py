"""Exception hierarchy for the integrity monitor.

Setup problems (bad configuration, bad baseline, unreadable log) are raised as
:class:`HidsError` subclasses and abort the operation in progress. Problems
with individual monitored files during a check never raise; they become
incidents instead.
"""


class HidsError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigurationError(HidsError, ValueError):
    """The INI configuration or a settings value is invalid."""


# --- File preconditions ---

class InvalidPathError(HidsError, ValueError):
    """A path is not in canonical form."""

    def __init__(self, path: str, canonical: str | None = None):
        self.path = path
        self.canonical = canonical
        detail = f" (canonical: {canonical})" if canonical else ""
        super().__init__(f"Path is not canonical: {path}{detail}")


class MissingFileError(HidsError, FileNotFoundError):
    """A file that must exist was not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File not found: {path}")


class UnreadableFileError(HidsError, PermissionError):
    """A file exists but cannot be read (or written, for outputs)."""

    def __init__(self, path: str, action: str = "read"):
        self.path = path
        super().__init__(f"Can not {action} file: {path}")


class UnsupportedAlgorithmError(HidsError, ValueError):
    """The digest algorithm is not one of MD5, SHA1, SHA256."""


# --- Persisted formats ---

class MalformedBaselineLineError(HidsError, ValueError):
    """A baseline line does not contain the ``digest:path`` separator."""

    def __init__(self, line_number: int, line: str):
        self.line_number = line_number
        self.line = line
        super().__init__(f"Invalid baseline line {line_number}: {line!r}")


class IncidentLogError(HidsError, ValueError):
    """The incident log could not be parsed."""

    def __init__(self, message: str, line_number: int | None = None, line: str | None = None):
        self.line_number = line_number
        self.line = line
        location = f" (line {line_number})" if line_number is not None else ""
        suffix = f": {line}" if line is not None else ""
        super().__init__(f"{message}{location}{suffix}")


class InvalidSessionHeaderError(IncidentLogError):
    """A non-blank line at session scope is not a valid session header."""


class InvalidFileCountError(IncidentLogError):
    """The ``Known files`` count is not a non-negative integer."""


class InvalidIncidentLineError(IncidentLogError):
    """An incident line is not ``[timestamp][CODE]description`` followed by a path."""


class UnknownIncidentCodeError(IncidentLogError):
    """An incident line carries a code name that is not recognised."""


class IncidentLogWriteError(HidsError, OSError):
    """Appending to or flushing the incident log failed."""
