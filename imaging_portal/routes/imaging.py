"""
Imaging API Routes
Read access to a user's studies and upload sessions
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging

from imaging_portal.errors import NotFound
from imaging_portal.models import ImagingStudy, UploadSession
from imaging_portal.utils.decorators import owns_study

logger = logging.getLogger(__name__)

imaging_bp = Blueprint('imaging', __name__, url_prefix='/api/imaging')


@imaging_bp.route('/studies', methods=['GET'])
@jwt_required()
def list_studies():
    """List the caller's studies, newest first"""
    user_id = get_jwt_identity()
    studies = (
        ImagingStudy.query
        .filter_by(user_id=user_id)
        .order_by(ImagingStudy.created_at.desc(), ImagingStudy.study_id)
        .all()
    )
    return jsonify({
        'success': True,
        'data': [s.to_dict() for s in studies]
    }), 200


@imaging_bp.route('/studies/<study_id>', methods=['GET'])
@jwt_required()
def get_study(study_id):
    """Get one study owned by the caller"""
    study = ImagingStudy.query.get(study_id)
    if not owns_study(study, get_jwt_identity()):
        raise NotFound('Study not found')
    return jsonify({'success': True, 'data': study.to_dict()}), 200


@imaging_bp.route('/upload-sessions/<session_id>', methods=['GET'])
@jwt_required()
def get_upload_session(session_id):
    """Status of an upload session, including the ingest error if any"""
    upload_session = UploadSession.query.get(session_id)
    if upload_session is None or str(upload_session.user_id) != str(get_jwt_identity()):
        raise NotFound('Upload session not found')
    return jsonify({'success': True, 'data': upload_session.to_dict()}), 200
