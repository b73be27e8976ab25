"""
Tests for the HTTP surface: push ingest, imaging reads, longitudinal endpoints, DICOMweb listing.
"""
import base64
import json

from imaging_portal.clients.healthcare import PollResult
from imaging_portal.extensions import db
from imaging_portal.models import UploadSession
from conftest import GCS_PREFIX, SAGITTAL, load_two_studies, make_slice


def push_envelope(payload):
    data = base64.b64encode(json.dumps(payload).encode()).decode()
    return {
        'message': {'data': data, 'attributes': {}, 'messageId': '1234'},
        'subscription': 'projects/vv-1-a/subscriptions/dicom-ingest-push',
    }


class TestPubSubIngest:

    def test_successful_ingest_returns_200(self, client, storage, upload_session):
        load_two_studies(storage)
        resp = client.post('/internal/pubsub/dicom-ingest',
                           json=push_envelope({'session_id': 'sess-1', 'gcs_prefix': GCS_PREFIX}))
        assert resp.status_code == 200
        assert len(resp.get_json()['data']['study_ids']) == 2
        db.session.expire_all()
        assert UploadSession.query.get('sess-1').status == 'ready'

    def test_malformed_envelope_is_400(self, client, upload_session):
        resp = client.post('/internal/pubsub/dicom-ingest', json={'message': {'data': '***'}})
        assert resp.status_code == 400
        resp = client.post('/internal/pubsub/dicom-ingest', json={'message': {}})
        assert resp.status_code == 400
        resp = client.post('/internal/pubsub/dicom-ingest', json=push_envelope({'session_id': 'sess-1'}))
        assert resp.status_code == 400

    def test_unknown_session_is_404(self, client):
        resp = client.post('/internal/pubsub/dicom-ingest',
                           json=push_envelope({'session_id': 'nope', 'gcs_prefix': GCS_PREFIX}))
        assert resp.status_code == 404

    def test_whole_bucket_prefix_is_400(self, client, dicom_store, upload_session):
        resp = client.post('/internal/pubsub/dicom-ingest',
                           json=push_envelope({'session_id': 'sess-1', 'gcs_prefix': 'gs://vv-storage-vault/'}))
        assert resp.status_code == 400
        assert dicom_store.imports == []

    def test_failed_import_is_500_so_pubsub_retries(self, client, storage, dicom_store, upload_session):
        load_two_studies(storage)
        dicom_store.poll_results = [PollResult(done=True, error_message='quota exceeded')]
        resp = client.post('/internal/pubsub/dicom-ingest',
                           json=push_envelope({'session_id': 'sess-1', 'gcs_prefix': GCS_PREFIX}))
        assert resp.status_code == 500
        db.session.expire_all()
        session = UploadSession.query.get('sess-1')
        assert session.status == 'error'
        assert session.error_message == 'quota exceeded'

    def test_push_token_is_enforced_when_configured(self, app, client, storage, upload_session):
        app.config['INGEST_PUSH_TOKEN'] = 'push-secret'
        body = push_envelope({'session_id': 'sess-1', 'gcs_prefix': GCS_PREFIX})
        assert client.post('/internal/pubsub/dicom-ingest', json=body).status_code == 401

        load_two_studies(storage)
        resp = client.post('/internal/pubsub/dicom-ingest', json=body,
                           headers={'Authorization': 'Bearer push-secret'})
        assert resp.status_code == 200


class TestImagingReads:

    def test_lists_only_callers_studies(self, client, auth_headers, make_study):
        make_study('STUDY-A', '1.2.3.A')
        make_study('STUDY-X', '1.2.3.X', user_id='user-2')
        resp = client.get('/api/imaging/studies', headers=auth_headers())
        assert resp.status_code == 200
        assert [s['study_id'] for s in resp.get_json()['data']] == ['STUDY-A']

    def test_foreign_study_is_404(self, client, auth_headers, make_study):
        make_study('STUDY-X', '1.2.3.X', user_id='user-2')
        resp = client.get('/api/imaging/studies/STUDY-X', headers=auth_headers())
        assert resp.status_code == 404
        assert resp.get_json()['success'] is False

    def test_upload_session_status(self, client, auth_headers, upload_session):
        resp = client.get('/api/imaging/upload-sessions/sess-1', headers=auth_headers())
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'uploaded'
        assert client.get('/api/imaging/upload-sessions/sess-1',
                          headers=auth_headers('user-2')).status_code == 404

    def test_requires_token(self, client):
        assert client.get('/api/imaging/studies').status_code == 401


class TestLongitudinalEndpoints:

    def _index_two_studies(self, client, auth_headers, dicom_store, make_study):
        for study_id, uid in (('STUDY-A', '1.2.3.A'), ('STUDY-B', '1.2.3.B')):
            make_study(study_id, uid)
            dicom_store.metadata[uid] = [
                make_slice(f'{uid}.1', f'{uid}.1.{i}', z=i * 10.0, instance_number=i + 1, study_uid=uid)
                for i in range(5)
            ]
        return client.post('/api/imaging/longitudinal/index',
                           json={'studyIds': ['STUDY-A', 'STUDY-B']}, headers=auth_headers())

    def test_index_then_status(self, client, auth_headers, dicom_store, make_study):
        resp = self._index_two_studies(client, auth_headers, dicom_store, make_study)
        assert resp.status_code == 202
        assert [r['status'] for r in resp.get_json()['data']] == ['indexed', 'indexed']

        resp = client.get('/api/imaging/longitudinal/index-status?studyIds=STUDY-A,STUDY-B',
                          headers=auth_headers())
        assert resp.status_code == 200
        assert {s['studyId']: s['status'] for s in resp.get_json()['data']} == {
            'STUDY-A': 'indexed', 'STUDY-B': 'indexed'
        }

    def test_index_skips_foreign_studies(self, client, auth_headers, make_study):
        make_study('STUDY-X', '1.2.3.X', user_id='user-2')
        resp = client.post('/api/imaging/longitudinal/index',
                           json={'studyIds': ['STUDY-X']}, headers=auth_headers())
        assert resp.status_code == 202
        assert resp.get_json()['data'] == []

    def test_resolve_point(self, client, auth_headers, dicom_store, make_study):
        self._index_two_studies(client, auth_headers, dicom_store, make_study)
        resp = client.post('/api/imaging/longitudinal/resolve-point', json={
            'frameOfReferenceUid': '1.2.3.F1', 'x': 0, 'y': 0, 'z': 0,
            'studyIds': ['STUDY-A', 'STUDY-B'],
        }, headers=auth_headers())
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert [(m['studyId'], m['sopInstanceUid'], m['instanceNumber']) for m in data] == [
            ('STUDY-A', '1.2.3.A.1.0', 1),
            ('STUDY-B', '1.2.3.B.1.0', 1),
        ]
        assert data[0]['studyInstanceUid'] == '1.2.3.A'
        assert data[0]['seriesInstanceUid'] == '1.2.3.A.1'
        assert (data[0]['row'], data[0]['col']) == (0.0, 0.0)

    def test_resolve_point_validation(self, client, auth_headers):
        resp = client.post('/api/imaging/longitudinal/resolve-point', json={
            'frameOfReferenceUid': '1.2.3.F1', 'x': 'left', 'y': 0, 'z': 0, 'studyIds': ['STUDY-A'],
        }, headers=auth_headers())
        assert resp.status_code == 400
        for bad in ('nan', 'inf', True, None):
            resp = client.post('/api/imaging/longitudinal/resolve-point', json={
                'frameOfReferenceUid': '1.2.3.F1', 'x': 0, 'y': bad, 'z': 0, 'studyIds': ['STUDY-A'],
            }, headers=auth_headers())
            assert resp.status_code == 400
        resp = client.post('/api/imaging/longitudinal/resolve-point', json={
            'frameOfReferenceUid': '', 'x': 0, 'y': 0, 'z': 0, 'studyIds': ['STUDY-A'],
        }, headers=auth_headers())
        assert resp.status_code == 400
        resp = client.get('/api/imaging/longitudinal/index-status', headers=auth_headers())
        assert resp.status_code == 400


class TestDicomWebListing:

    def test_series_and_filtered_instances(self, client, auth_headers, dicom_store, make_study):
        make_study('STUDY-A', '1.2.3.A')
        dicom_store.metadata['1.2.3.A'] = [
            make_slice('1.2.3.A.1', 'scout', orientation=SAGITTAL, instance_number=1, study_uid='1.2.3.A'),
            make_slice('1.2.3.A.1', 'ax3', z=20.0, instance_number=3, study_uid='1.2.3.A'),
            make_slice('1.2.3.A.1', 'ax2', z=10.0, instance_number=2, study_uid='1.2.3.A'),
            make_slice('1.2.3.A.2', 'other', study_uid='1.2.3.A'),
        ]

        resp = client.get('/api/dicomweb/studies/1.2.3.A/series', headers=auth_headers())
        assert resp.status_code == 200
        series = resp.get_json()
        assert [s['0020000E']['Value'][0] for s in series] == ['1.2.3.A.1', '1.2.3.A.2']
        assert series[0]['00201209']['Value'] == [3]

        resp = client.get('/api/dicomweb/studies/1.2.3.A/series/1.2.3.A.1/instances', headers=auth_headers())
        assert resp.status_code == 200
        assert [i['00080018']['Value'][0] for i in resp.get_json()] == ['ax2', 'ax3']

    def test_unknown_study_is_404(self, client, auth_headers, make_study):
        make_study('STUDY-X', '1.2.3.X', user_id='user-2')
        resp = client.get('/api/dicomweb/studies/1.2.3.X/series', headers=auth_headers())
        assert resp.status_code == 404


def test_health_endpoints(client):
    assert client.get('/health/live').status_code == 200
    resp = client.get('/health/ready')
    assert resp.status_code == 200
    assert resp.get_json()['dicom_store'] == 'configured'
