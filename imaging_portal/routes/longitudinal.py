"""
Longitudinal API Routes
Slice indexing across a patient's studies and point-to-slice resolution
"""
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging
import math

from imaging_portal.errors import ImagingError, ValidationError
from imaging_portal.services.longitudinal_service import trigger_indexing, get_index_statuses
from imaging_portal.services.point_resolver import resolve_point

logger = logging.getLogger(__name__)

longitudinal_bp = Blueprint('longitudinal', __name__, url_prefix='/api/imaging/longitudinal')


def _study_ids_from_json(data):
    study_ids = data.get('studyIds')
    if not isinstance(study_ids, list) or not all(isinstance(s, str) for s in study_ids):
        raise ValidationError('studyIds must be a list of strings')
    study_ids = [s.strip() for s in study_ids if s.strip()]
    if not study_ids:
        raise ValidationError('studyIds is required')
    return study_ids


def _coordinate(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError('x, y and z must be finite numbers')
    return float(value)


@longitudinal_bp.route('/index', methods=['POST'])
@jwt_required()
def index_studies():
    """
    (Re)build the slice index for each of the caller's studies

    Request body: {"studyIds": ["STUDY-...", ...]}

    Studies the caller does not own are skipped. When the task queue is on,
    indexing is queued; otherwise it runs inline and per-study failures are
    reported in the response (and in the study's index status).
    """
    user_id = get_jwt_identity()
    study_ids = _study_ids_from_json(request.get_json(silent=True) or {})

    results = []
    for study_id in study_ids:
        if current_app.config.get('USE_TASK_QUEUE'):
            from tasks.index_tasks import index_study
            task = index_study.delay(study_id, user_id)
            results.append({'studyId': study_id, 'queued': True, 'taskId': task.id})
            continue
        try:
            count = trigger_indexing(study_id, user_id)
            results.append({'studyId': study_id, 'status': 'indexed', 'slices': count})
        except ImagingError as e:
            if e.status_code == 404:
                logger.info(f"Index request skipped study {study_id}: not found for caller")
                continue
            results.append({'studyId': study_id, 'status': 'error', 'error': str(e)})

    return jsonify({'success': True, 'data': results}), 202


@longitudinal_bp.route('/index-status', methods=['GET'])
@jwt_required()
def index_status():
    """Index status per study: ?studyIds=a,b"""
    raw = request.args.get('studyIds', '')
    study_ids = [s.strip() for s in raw.split(',') if s.strip()]
    if not study_ids:
        raise ValidationError('studyIds is required')

    statuses = get_index_statuses(study_ids, get_jwt_identity())
    return jsonify({'success': True, 'data': statuses}), 200


@longitudinal_bp.route('/resolve-point', methods=['POST'])
@jwt_required()
def resolve_point_route():
    """
    Nearest slice in each study for a patient-space point

    Request body: {"frameOfReferenceUid": "...", "x": 0, "y": 0, "z": 0, "studyIds": [...]}
    """
    data = request.get_json(silent=True) or {}
    x, y, z = (_coordinate(data, k) for k in ('x', 'y', 'z'))

    matches = resolve_point(
        data.get('frameOfReferenceUid') or '',
        x, y, z,
        _study_ids_from_json(data),
        get_jwt_identity(),
    )
    return jsonify({'success': True, 'data': [m.to_dict() for m in matches]}), 200
