"""
Workers Package
Background automation for reminders and follow-ups
"""
from engagement.workers.scheduler import Scheduler, ScheduledTask, HourlyCadence, DailyCadence
from engagement.workers.automation_runner import AutomationRunner, ScanReport

__all__ = [
    "Scheduler",
    "ScheduledTask",
    "HourlyCadence",
    "DailyCadence",
    "AutomationRunner",
    "ScanReport",
]
