from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class LedgerEntry:
    amount: float
    category: Optional[str]
    currency: str
    note: Optional[str]
    spending_time: datetime             # instant of execution, aware UTC
    recurring_rule_id: Optional[int] = None
    device_name: Optional[str] = None
    id: Optional[int] = None            # None until appended
    created_at: str = ""
