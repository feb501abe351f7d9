from dataclasses import dataclass
from datetime import timedelta
import os

# -----------------------------
# Configuration
# -----------------------------
DATABASE_URL = os.getenv("CIRC_DB", "sqlite:///./circulation.db")
LOG_LEVEL = os.getenv("CIRC_LOG", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

LOAN_PERIOD_DAYS = int(os.getenv("CIRC_LOAN_DAYS", "14"))
HOLD_WINDOW_DAYS = int(os.getenv("CIRC_HOLD_DAYS", "3"))
# one day in production; shrink it to demo overdue fines in minutes
FINE_UNIT_SECONDS = int(os.getenv("CIRC_FINE_UNIT_SECONDS", "86400"))
FINE_RATE_CENTS = int(os.getenv("CIRC_FINE_RATE", "50"))

TOP_BOOKS_LIMIT = int(os.getenv("CIRC_TOP_BOOKS", "10"))
ACTIVITY_WINDOW_DAYS = int(os.getenv("CIRC_ACTIVITY_DAYS", "30"))


@dataclass(frozen=True)
class LoanPolicy:
    loan_period: timedelta = timedelta(days=LOAN_PERIOD_DAYS)
    hold_window: timedelta = timedelta(days=HOLD_WINDOW_DAYS)
    fine_unit: timedelta = timedelta(seconds=FINE_UNIT_SECONDS)
    fine_rate: int = FINE_RATE_CENTS


DEFAULT_POLICY = LoanPolicy()
