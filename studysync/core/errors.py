class StudySyncError(Exception):
    """Base for every error the core reports to the API layer."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GenerationError(StudySyncError):
    """The generation endpoint failed after all retries, or returned nothing."""

    status_code = 502


class SynthesisError(StudySyncError):
    """The model answered, but not with the JSON shape we asked for."""

    status_code = 502


class ValidationError(StudySyncError):
    status_code = 422


class NotFoundError(StudySyncError):
    status_code = 404


class BusyError(StudySyncError):
    status_code = 409
