from .upload_session import UploadSession
from .study import ImagingStudy
from .indexed_slice import IndexedSlice
from .index_status import LongitudinalIndexStatus

__all__ = ["UploadSession", "ImagingStudy", "IndexedSlice", "LongitudinalIndexStatus"]
