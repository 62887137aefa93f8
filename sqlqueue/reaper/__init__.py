"""
Reaper module.
Contains the periodic reclaimer and pruner for queue tables.
"""

from sqlqueue.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]
