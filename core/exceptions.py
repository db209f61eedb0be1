"""
HSTS Probe exceptions.
Defines every custom exception raised across the component boundaries.
"""


class HSTSProbeException(Exception):
    """Base exception for the HSTS probe."""
    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ValidationError(HSTSProbeException):
    """Invalid argument handed to an operation (blank address, negative timeout...)."""
    def __init__(self, message: str, field: str = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class EmptyBatchError(HSTSProbeException):
    """A batch left no URL to probe after normalization."""
    def __init__(self, message: str = "No valid URLs found.", line_count: int = 0):
        super().__init__(message, "EMPTY_BATCH")
        self.line_count = line_count


class InputError(HSTSProbeException):
    """Input file could not be read."""
    def __init__(self, message: str, path: str = None):
        super().__init__(message, "INPUT_ERROR")
        self.path = path
