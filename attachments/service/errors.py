"""
Processing errors.

Validation failures are raised as Django ValidationErrors keyed on the
"file" field so forms, serializers and model code can surface them as-is.
"""

from django.core.exceptions import ImproperlyConfigured, ValidationError

FILE_FIELD = 'file'


class CodecError(Exception):
    """An external codec invocation failed, timed out or produced garbage"""

    def __init__(self, message, operation=None, stderr=None):
        super().__init__(message)
        self.operation = operation
        self.stderr = stderr

    def __str__(self):
        message = super().__str__()
        if self.operation:
            message = f'{self.operation}: {message}'
        return message


class ConfigurationError(ImproperlyConfigured):
    """An emitted extension is not recognized by the serving MIME table"""


def file_error(message, code):
    """
    Build a ValidationError attached to the "file" field.

    Args:
        message: Human-readable message
        code: Machine-readable error code ('blank', 'too_large', 'unsupported')

    Returns:
        ValidationError
    """
    return ValidationError({FILE_FIELD: ValidationError(message, code=code)})
