"""
Celery tasks for longitudinal slice indexing
"""
import logging
from imaging_portal.extensions import celery
from imaging_portal.services.longitudinal_service import trigger_indexing

logger = logging.getLogger(__name__)


@celery.task(bind=True, name='tasks.index_study')
def index_study(self, study_id, user_id=None):
    """
    Rebuild the slice index of one study

    Args:
        study_id: ImagingStudy id
        user_id: owner to check against (None skips the check)

    Returns:
        dict: Indexing result
    """
    try:
        self.update_state(state='PROCESSING', meta={'step': 'Indexing slices'})
        count = trigger_indexing(study_id, user_id)
        return {'success': True, 'study_id': study_id, 'slices': count}

    except Exception as e:
        logger.error(f"Error indexing study {study_id}: {e}", exc_info=True)
        return {'success': False, 'study_id': study_id, 'error': str(e)}


@celery.task(name='tasks.index_studies')
def index_studies(study_ids, user_id=None):
    """
    Queue indexing for several studies

    Returns:
        dict: Task ids per study
    """
    task_ids = {}
    for study_id in study_ids:
        task_ids[study_id] = index_study.delay(study_id, user_id).id
    return {'success': True, 'tasks': task_ids}
