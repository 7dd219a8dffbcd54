"""Administrative signal policy."""

from webhook_trader.admin.policy import SIGNAL_RULE_FIELDS, AdminPolicyGate, DailyStats

__all__ = ["SIGNAL_RULE_FIELDS", "AdminPolicyGate", "DailyStats"]
