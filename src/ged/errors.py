"""Custom exceptions for ged."""


class GedError(Exception):
    """Base exception for all ged errors."""

    pass


class InvalidPatternError(GedError):
    """Raised when a query pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(reason)


class LoadError(GedError):
    """Raised when Go packages cannot be loaded or type-checked."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"{target}: {reason}")


class GoModNotFoundError(LoadError):
    """Raised when no go.mod exists at or above the working directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(path, "go.mod not found (is this inside a Go module?)")
