"""
Table registry.

Importing this module registers every table with ``SQLModel.metadata`` so
``create_all()`` (run at startup) sees the full schema.
"""

from investment_engine.models.account import Account  # noqa: F401
from investment_engine.models.app_setting import AppSetting  # noqa: F401
from investment_engine.models.investment import Investment  # noqa: F401
from investment_engine.models.ledger_entry import LedgerEntry  # noqa: F401
from investment_engine.models.withdrawal import WithdrawalRequest  # noqa: F401
