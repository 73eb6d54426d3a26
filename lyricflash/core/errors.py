class LyricflashError(Exception):
    """Base class for pipeline errors surfaced to callers."""


class InputError(LyricflashError):
    """Caller-side problem. Never retried."""


class EmptyLyricsError(InputError):
    def __init__(self, message: str = "no usable lyrics"):
        super().__init__(message)


class MissingIdentifierError(InputError):
    def __init__(self, field_name: str):
        super().__init__(f"missing required identifier: {field_name}")
        self.field_name = field_name


class ExternalServiceError(LyricflashError):
    """Non-transient failure of an external capability (bad credential, bad request)."""

    def __init__(self, message: str, status=None):
        super().__init__(message)
        self.status = status


class TranslationServiceError(ExternalServiceError):
    pass
