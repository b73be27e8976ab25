"""
Pytest configuration for the imaging portal tests.

Builds the app with TestingConfig (in-memory SQLite) and injects in-process
fakes for object storage and the DICOM store, so no Google credentials are needed.
Run from the project root with: pytest
"""
import io
from datetime import datetime

import pytest
from pydicom.dataset import Dataset, FileDataset, FileMetaDataset
from pydicom.uid import ImplicitVRLittleEndian

from imaging_portal import create_app
from imaging_portal.clients.healthcare import PollResult
from imaging_portal.clients.object_storage import StorageObject
from imaging_portal.errors import UpstreamError
from imaging_portal.extensions import db
from imaging_portal.models import ImagingStudy, UploadSession

CT_IMAGE_STORAGE = '1.2.840.10008.5.1.4.1.1.2'
AXIAL = [1, 0, 0, 0, 1, 0]
SAGITTAL = [0, 1, 0, 0, 0, -1]


class FakeStorage:
    """Object storage enumerator over an in-memory {bucket/name: bytes} map"""

    def __init__(self):
        self.objects = {}
        self.list_error = None

    def put(self, bucket, name, data):
        self.objects[(bucket, name)] = data

    def list_objects(self, bucket, prefix):
        if self.list_error:
            raise self.list_error
        for (obj_bucket, name) in sorted(self.objects):
            if obj_bucket == bucket and name.startswith(prefix):
                data = self.objects[(obj_bucket, name)]
                yield StorageObject(name=name, size=len(data), open=lambda d=data: io.BytesIO(d))


class FakeDicomStore:
    """DICOM store double: scripted operation results and canned study metadata"""

    def __init__(self):
        self.imports = []
        self.poll_results = [PollResult(done=True)]
        self.polls = 0
        self.metadata = {}
        self.metadata_error = None

    def start_import(self, gcs_prefix):
        self.imports.append(gcs_prefix.rstrip('/') + '/**')
        return f"projects/p/locations/l/datasets/d/operations/op-{len(self.imports)}"

    def get_operation(self, operation_name):
        index = min(self.polls, len(self.poll_results) - 1)
        self.polls += 1
        result = self.poll_results[index]
        if isinstance(result, Exception):
            raise result
        return result

    def study_metadata(self, study_instance_uid):
        if self.metadata_error:
            raise self.metadata_error
        if study_instance_uid not in self.metadata:
            raise UpstreamError(f"study metadata failed: HTTP 404 for {study_instance_uid}")
        return [ds.to_json_dict() for ds in self.metadata[study_instance_uid]]


def make_dicom_bytes(study_uid, series_uid, sop_uid, modality='CT',
                     study_date='20240105', study_description='CHEST CT'):
    """Serialize a minimal Part 10 DICOM file"""
    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = CT_IMAGE_STORAGE
    meta.MediaStorageSOPInstanceUID = sop_uid
    meta.TransferSyntaxUID = ImplicitVRLittleEndian

    ds = FileDataset('test.dcm', {}, file_meta=meta, preamble=b'\0' * 128)
    ds.is_little_endian = True
    ds.is_implicit_VR = True
    ds.SOPClassUID = CT_IMAGE_STORAGE
    ds.SOPInstanceUID = sop_uid
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.Modality = modality
    if study_date:
        ds.StudyDate = study_date
    if study_description:
        ds.StudyDescription = study_description

    buffer = io.BytesIO()
    ds.save_as(buffer)
    return buffer.getvalue()


def make_slice(series_uid, sop_uid, z=0.0, instance_number=1, orientation=None,
               spacing=(0.5, 0.5), frame_uid='1.2.3.F1', ipp=None,
               study_uid='1.2.3.STUDY', include_spacing=True, include_frame=True):
    """A metadata Dataset carrying the geometry the indexer reads"""
    ds = Dataset()
    ds.SOPClassUID = CT_IMAGE_STORAGE
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.SOPInstanceUID = sop_uid
    ds.Modality = 'CT'
    ds.InstanceNumber = instance_number
    ds.ImagePositionPatient = list(ipp) if ipp is not None else [0.0, 0.0, z]
    ds.ImageOrientationPatient = list(orientation if orientation is not None else AXIAL)
    if include_spacing:
        ds.PixelSpacing = list(spacing)
    if include_frame:
        ds.FrameOfReferenceUID = frame_uid
    return ds


BUCKET = 'vv-storage-vault'
PREFIX = 'uploads/user-1/sess-1/'
GCS_PREFIX = f'gs://{BUCKET}/{PREFIX}'


def load_two_studies(storage):
    """Study A: 6 files over 2 series; study B: 4 files; plus non-DICOM noise"""
    for i in range(6):
        storage.put(BUCKET, f'{PREFIX}a{i:02d}.dcm', make_dicom_bytes(
            '1.2.3.A', f'1.2.3.A.{i % 2}', f'1.2.3.A.{i % 2}.{i}',
            modality='CT' if i % 2 == 0 else 'PT',
            study_description='' if i == 0 else 'PET CT',
        ))
    for i in range(4):
        storage.put(BUCKET, f'{PREFIX}b{i:02d}', make_dicom_bytes(
            '1.2.3.B', '1.2.3.B.0', f'1.2.3.B.0.{i}', modality='MR', study_date='20230301',
        ))
    storage.put(BUCKET, f'{PREFIX}README.txt', b'uploaded from portal')
    storage.put(BUCKET, f'{PREFIX}c00.dcm', b'this is not a dicom file')
    storage.put(BUCKET, f'{PREFIX}nested/', b'')
    storage.put(BUCKET, 'uploads/user-1/other-session/x.dcm',
                make_dicom_bytes('1.2.3.C', '1.2.3.C.0', '1.2.3.C.0.1'))


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def dicom_store():
    return FakeDicomStore()


@pytest.fixture
def app(storage, dicom_store):
    app = create_app('testing', storage=storage, dicom_store=dicom_store)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Authorization header factory: auth_headers('user-1')"""
    from flask_jwt_extended import create_access_token

    def _headers(user_id='user-1'):
        return {'Authorization': f"Bearer {create_access_token(identity=user_id)}"}
    return _headers


@pytest.fixture
def upload_session(app):
    upload_session = UploadSession(
        session_id='sess-1',
        user_id='user-1',
        created_by='patient',
        status=UploadSession.STATUS_UPLOADED,
        gcs_uri='gs://vv-storage-vault/uploads/user-1/sess-1/',
    )
    db.session.add(upload_session)
    db.session.commit()
    return upload_session


@pytest.fixture
def make_study(app):
    """Persist an ImagingStudy: make_study('STUDY-A', '1.2.3.A', user_id='user-1')"""
    def _make(study_id, study_uid, user_id='user-1', study_date='20240105'):
        study = ImagingStudy(
            study_id=study_id,
            user_id=user_id,
            study_instance_uid=study_uid,
            series_instance_uids=[],
            modalities_in_study=['CT'],
            study_date=study_date,
            num_instances=0,
            created_at=datetime.utcnow(),
        )
        db.session.add(study)
        db.session.commit()
        return study
    return _make
