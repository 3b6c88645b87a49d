"""
Service layer for media attachment processing.

This module contains reusable functions for classifying, validating and
rendering media, independent of the database/Django models. These functions
are used by:
- The Django bridge and huey tasks (attachments/processing.py, attachments/tasks.py)
- The CLI management command (management/commands/process_media.py)
"""
