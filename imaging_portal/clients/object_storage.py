"""
Object storage enumeration over Google Cloud Storage
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, IO, Iterator, Tuple

from imaging_portal.errors import ValidationError

logger = logging.getLogger(__name__)

GCS_SCHEME = 'gs://'


@dataclass
class StorageObject:
    """One listed object. `open` returns a readable binary stream."""
    name: str
    size: int
    open: Callable[[], IO[bytes]]


def parse_gcs_prefix(gcs_prefix: str) -> Tuple[str, str]:
    """
    Split 'gs://bucket/some/prefix/' into ('bucket', 'some/prefix/').

    Raises ValidationError for anything that is not a gs:// location, and
    for a bare bucket with no object prefix.
    """
    if not gcs_prefix or not gcs_prefix.startswith(GCS_SCHEME):
        raise ValidationError(f"gcs prefix must start with {GCS_SCHEME}: {gcs_prefix!r}")
    bucket, _, prefix = gcs_prefix[len(GCS_SCHEME):].partition('/')
    if not bucket:
        raise ValidationError(f"gcs prefix has no bucket: {gcs_prefix!r}")
    if not prefix.strip('/'):
        raise ValidationError(f"gcs prefix has no object prefix: {gcs_prefix!r}")
    return bucket, prefix


class GcsObjectEnumerator:
    """Lists objects under a bucket prefix with google-cloud-storage"""

    def __init__(self, client=None, project_id=None):
        if client is None:
            from google.cloud import storage
            client = storage.Client(project=project_id)
        self.client = client

    def list_objects(self, bucket: str, prefix: str) -> Iterator[StorageObject]:
        """Yield objects in lexicographic name order, as GCS lists them"""
        for blob in self.client.list_blobs(bucket, prefix=prefix):
            yield StorageObject(
                name=blob.name,
                size=blob.size or 0,
                open=partial(blob.open, 'rb'),
            )
