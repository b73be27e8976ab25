"""
DICOMweb listing routes
Series and instance listings for the viewer, scoped to the caller's studies
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging

from imaging_portal.errors import NotFound
from imaging_portal.context import get_service_context
from imaging_portal.models import ImagingStudy
from imaging_portal.services.dicomweb_service import list_series, list_instances
from imaging_portal.utils.dicom_utils import datasets_from_dicom_json

logger = logging.getLogger(__name__)

dicomweb_bp = Blueprint('dicomweb', __name__, url_prefix='/api/dicomweb')


def _owned_study_datasets(study_uid):
    study = ImagingStudy.query.filter_by(
        study_instance_uid=study_uid, user_id=get_jwt_identity()
    ).first()
    if study is None:
        raise NotFound('Study not found')
    metadata = get_service_context().require_dicom_store().study_metadata(study_uid)
    return datasets_from_dicom_json(metadata)


@dicomweb_bp.route('/studies/<study_uid>/series', methods=['GET'])
@jwt_required()
def series_listing(study_uid):
    """Series of a study as DICOM JSON"""
    return jsonify(list_series(_owned_study_datasets(study_uid), study_uid)), 200


@dicomweb_bp.route('/studies/<study_uid>/series/<series_uid>/instances', methods=['GET'])
@jwt_required()
def instance_listing(study_uid, series_uid):
    """Instances of a series as DICOM JSON, off-orientation images removed"""
    return jsonify(list_instances(_owned_study_datasets(study_uid), study_uid, series_uid)), 200
