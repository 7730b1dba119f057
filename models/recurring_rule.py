from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.cadence import Cadence, cadence_from_fields


@dataclass
class RecurrenceRule:
    id: int
    amount: float
    category: Optional[str]
    currency: str
    note: Optional[str]
    frequency_type: str                         # 'daily' | 'weekly' | 'monthly' | 'yearly'
    interval_value: int
    next_run_at: datetime                       # aware, UTC
    status: str = "active"                      # 'active' | 'paused'
    weekly_day_of_week: Optional[int] = None    # 1=Mon..7=Sun
    monthly_day_of_month: Optional[int] = None  # 1-31
    is_last_day_of_month: bool = False
    start_date: Optional[str] = None            # 'YYYY-MM-DD', advisory
    end_date: Optional[str] = None              # 'YYYY-MM-DD', advisory
    timezone: str = "Asia/Shanghai"
    last_run_at: Optional[datetime] = None
    device_name: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def cadence(self) -> Cadence:
        """Raises InvalidRuleError when the cadence fields disagree with frequency_type."""
        return cadence_from_fields(
            self.frequency_type,
            self.interval_value,
            self.weekly_day_of_week,
            self.monthly_day_of_month,
            self.is_last_day_of_month,
        )
