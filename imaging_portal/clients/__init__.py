from .object_storage import GcsObjectEnumerator, StorageObject, parse_gcs_prefix
from .healthcare import HealthcareDicomStore, PollResult

__all__ = ["GcsObjectEnumerator", "StorageObject", "parse_gcs_prefix", "HealthcareDicomStore", "PollResult"]
