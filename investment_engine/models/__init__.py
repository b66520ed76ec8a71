"""SQLModel table models — import here so metadata is populated."""

from investment_engine.models.account import Account  # noqa: F401
from investment_engine.models.app_setting import AppSetting  # noqa: F401
from investment_engine.models.investment import Investment  # noqa: F401
from investment_engine.models.ledger_entry import LedgerEntry  # noqa: F401
from investment_engine.models.withdrawal import WithdrawalRequest  # noqa: F401
