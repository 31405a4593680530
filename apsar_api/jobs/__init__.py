"""
Background Jobs for the APSAR API.

This module contains scheduled jobs:
- notification_cleanup: purge read notifications past the retention period
- asset_reminders: notify officers about due maintenance and inspections
"""

from .asset_reminders import run_asset_reminder_job
from .notification_cleanup import run_cleanup_job

__all__ = ["run_asset_reminder_job", "run_cleanup_job"]
