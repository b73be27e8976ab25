"""
Error types raised by the ingest and longitudinal services.

Each carries the HTTP status the API layer renders it with.
"""


class ImagingError(Exception):
    """Base class for expected service failures"""
    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ValidationError(ImagingError):
    """Malformed or missing input"""
    status_code = 400


class NotFound(ImagingError):
    """Unknown entity, or one the caller does not own"""
    status_code = 404


class UpstreamError(ImagingError):
    """A call to object storage, the DICOM store or the database failed"""
    status_code = 502


class ImportFailedError(UpstreamError):
    """The DICOM store finished an import operation with an error.

    The message is the vendor-supplied error message, unchanged.
    """


class NoDataError(ImagingError):
    """Nothing usable was found (no studies under a prefix, no indexable slices)"""
    status_code = 422


class Cancelled(ImagingError):
    """The caller cancelled a blocking operation"""
    status_code = 499
