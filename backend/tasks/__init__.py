"""
Task-graph orchestration for the notification pipeline.

This module handles:
- Storing and claiming notification tasks
- Running the init/fetch/match/generate/send/cleanup handlers
- The scheduler entry point and the direct single-pass orchestrator
"""

from .task_processor import process_next_task
from .orchestrator import orchestrate_notification_processing
from .scheduler import handle_scheduler_request, is_authorized_request

__all__ = [
    'process_next_task',
    'orchestrate_notification_processing',
    'handle_scheduler_request',
    'is_authorized_request',
]
