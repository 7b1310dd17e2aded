"""
Check-in platform pipelines.

Business logic orchestration functions.
"""

from app.pipelines.checkin import *
from app.pipelines.scoring import *
