"""
Internal ingest endpoint
Receives Pub/Sub push deliveries announcing a finished upload. Any non-2xx
response makes Pub/Sub redeliver the message.
"""
import base64
import binascii
import json
import logging

from flask import Blueprint, request, jsonify, current_app

from imaging_portal.errors import NotFound, ValidationError
from imaging_portal.services.ingest_service import trigger_ingest
from imaging_portal.utils.decorators import require_internal_token

logger = logging.getLogger(__name__)

ingest_bp = Blueprint('ingest', __name__, url_prefix='/internal/pubsub')


def decode_push_envelope(envelope):
    """
    Pull {session_id, gcs_prefix} out of a Pub/Sub push envelope:
    {"message": {"data": <base64 JSON>, "attributes": {...}, "messageId": ...}, "subscription": ...}

    Raises:
        ValidationError: envelope, base64 or inner JSON malformed
    """
    if not isinstance(envelope, dict):
        raise ValidationError("invalid envelope")
    message = envelope.get('message') or {}
    data = message.get('data') if isinstance(message, dict) else None
    if not data:
        raise ValidationError("empty message data")
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"base64 decode error: {e}") from e
    try:
        payload = json.loads(decoded)
    except ValueError as e:
        raise ValidationError(f"invalid message json: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("invalid message json: expected an object")
    return (payload.get('session_id') or '').strip(), (payload.get('gcs_prefix') or '').strip()


@ingest_bp.route('/dicom-ingest', methods=['POST'])
@require_internal_token
def dicom_ingest():
    """
    Run (or queue) the ingest of one upload session.

    Returns:
        200 on success or when queued, 400 on a malformed message,
        404 for an unknown session, 500 when the ingest failed (retry)
    """
    try:
        session_id, gcs_prefix = decode_push_envelope(request.get_json(silent=True))
        if not session_id or not gcs_prefix:
            raise ValidationError("session_id and gcs_prefix are required")
    except ValidationError as e:
        logger.warning(f"PubSub dicom-ingest: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400

    logger.info(f"PubSub dicom-ingest: processing session_id={session_id} gcs_prefix={gcs_prefix}")

    if current_app.config.get('USE_TASK_QUEUE'):
        from tasks.ingest_tasks import ingest_upload_session
        result = ingest_upload_session.delay(session_id, gcs_prefix)
        return jsonify({'success': True, 'data': {'task_id': result.id, 'queued': True}}), 200

    try:
        studies = trigger_ingest(session_id, gcs_prefix)
    except ValidationError as e:
        logger.warning(f"PubSub dicom-ingest: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except Exception as e:
        logger.error(f"PubSub dicom-ingest failed for session {session_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e) if current_app.debug else 'Ingest failed'
        }), 500

    return jsonify({
        'success': True,
        'data': {'session_id': session_id, 'study_ids': [s.study_id for s in studies]}
    }), 200
