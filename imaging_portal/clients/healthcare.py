"""
Cloud Healthcare API DICOM store client

Covers the three calls the ingest and indexing pipelines need: start an
import from GCS, read a long-running operation, and fetch DICOMweb study
metadata.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from imaging_portal.errors import UpstreamError
from .object_storage import parse_gcs_prefix

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = 'https://www.googleapis.com/auth/cloud-platform'
DEFAULT_TIMEOUT = 60


@dataclass
class PollResult:
    """Snapshot of a long-running operation"""
    done: bool
    error_message: str = ''


def dicom_store_path(project_id: str, location: str, dataset_id: str, store_id: str) -> str:
    """Fully-qualified DICOM store resource name"""
    return (
        f"projects/{project_id}/locations/{location}"
        f"/datasets/{dataset_id}/dicomStores/{store_id}"
    )


class HealthcareDicomStore:
    """Talks to one managed DICOM store over the Healthcare REST API"""

    def __init__(self, project_id, location, dataset_id, store_id,
                 base_url='https://healthcare.googleapis.com/v1', session=None,
                 timeout=DEFAULT_TIMEOUT):
        self.store_path = dicom_store_path(project_id, location, dataset_id, store_id)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        if session is None:
            import google.auth
            from google.auth.transport.requests import AuthorizedSession
            credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
            session = AuthorizedSession(credentials)
        self.session = session

    def _request(self, method: str, url: str, what: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except Exception as e:
            raise UpstreamError(f"{what} failed: {e}") from e
        if response.status_code > 299:
            raise UpstreamError(f"{what} failed: HTTP {response.status_code}: {response.text[:500]}")
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{what} returned invalid JSON: {e}") from e

    def start_import(self, gcs_prefix: str) -> str:
        """
        Import every object under gcs_prefix into the store.

        Returns the long-running operation name.
        """
        parse_gcs_prefix(gcs_prefix)
        uri = gcs_prefix.rstrip('/') + '/**'
        body = {'gcsSource': {'uri': uri}}
        logger.info(f"Starting DICOM import into {self.store_path} from {uri}")
        payload = self._request('POST', f"{self.base_url}/{self.store_path}:import",
                                'dicom import', json=body)
        name = (payload or {}).get('name', '')
        if not name:
            raise UpstreamError("dicom import returned no operation name")
        return name

    def get_operation(self, operation_name: str) -> PollResult:
        """Read the current state of a long-running operation"""
        payload = self._request('GET', f"{self.base_url}/{operation_name}", 'get operation') or {}
        error = payload.get('error') or {}
        message = error.get('message', '') if error else ''
        if error and not message:
            message = f"operation failed with code {error.get('code')}"
        return PollResult(done=bool(payload.get('done')), error_message=message)

    def study_metadata(self, study_instance_uid: str) -> List[Dict[str, Any]]:
        """DICOMweb metadata for every instance of a study, as DICOM JSON"""
        url = f"{self.base_url}/{self.store_path}/dicomWeb/studies/{study_instance_uid}/metadata"
        payload = self._request('GET', url, 'study metadata',
                                headers={'Accept': 'application/dicom+json'})
        if not isinstance(payload, list):
            raise UpstreamError("study metadata response was not a list")
        return payload
