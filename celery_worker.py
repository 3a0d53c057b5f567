#!/usr/bin/env python3
"""
Celery Worker Entry Point
Run with: celery -A celery_worker.celery worker --loglevel=info
Or: python celery_worker.py
"""
from ehr import create_app
from ehr.extensions import celery

# Create Flask app to initialize Celery
app = create_app()

# Import tasks so Celery can discover them
from tasks import sync_tasks  # noqa: E402,F401

if __name__ == '__main__':
    # For development: run worker directly
    celery.worker_main([
        'worker',
        '--loglevel=info',
        '--concurrency=4'
    ])
