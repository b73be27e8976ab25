"""
Celery tasks module
Import all tasks here so Celery can discover them
"""
from . import ingest_tasks, index_tasks

__all__ = ['ingest_tasks', 'index_tasks']
