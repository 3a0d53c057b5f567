"""
Celery tasks module
Import all tasks here so Celery can discover them
"""
from . import sync_tasks

__all__ = ['sync_tasks']
