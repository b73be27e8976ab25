"""
Health check endpoints for monitoring and load balancers
"""
from flask import Blueprint, jsonify
from imaging_portal.extensions import db
from imaging_portal.context import get_service_context
from datetime import datetime

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('', methods=['GET'])
@health_bp.route('/ping', methods=['GET'])
def health_check():
    """Basic health check - no database connection"""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': 'imaging-portal'
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """Readiness check - database connection and cloud clients"""
    try:
        db.session.execute(db.text('SELECT 1'))
        db_status = 'connected'
    except Exception as e:
        db_status = f'error: {str(e)}'

    ctx = get_service_context()
    ready = db_status == 'connected'
    return jsonify({
        'status': 'ready' if ready else 'not_ready',
        'database': db_status,
        'object_storage': 'configured' if ctx.storage is not None else 'missing',
        'dicom_store': 'configured' if ctx.dicom_store is not None else 'missing',
        'timestamp': datetime.utcnow().isoformat()
    }), 200 if ready else 503


@health_bp.route('/live', methods=['GET'])
def liveness_check():
    """Liveness check for Kubernetes/containers"""
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200
