"""
Services package for the hiscores tracker.

Upstream client and the batch update runner.
"""

from .hiscores_client import HiscoresClient
from .update_runner import UpdateRunner, RunReport, RunState

__all__ = ['HiscoresClient', 'UpdateRunner', 'RunReport', 'RunState']
