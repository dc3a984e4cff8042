"""
Execution budget for report generation.
Reports call check() between stages and while folding streamed rows.
"""
import time
from typing import Optional

from stockledger.config import settings
from stockledger.errors import ReportTimeout


class ReportBudget:
    def __init__(self, report_type: str, seconds: Optional[float] = None, clock=time.monotonic):
        self.report_type = report_type
        self.seconds = settings.REPORT_TIMEOUT_SECONDS if seconds is None else seconds
        self._clock = clock
        self._deadline = clock() + self.seconds

    def check(self) -> None:
        if self._clock() > self._deadline:
            raise ReportTimeout(self.report_type, self.seconds)
