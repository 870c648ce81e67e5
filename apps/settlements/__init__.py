"""
Settlements App - BuddyRunner Payout Reconciliation

Groups each runner's completed errands and commissions into fixed-length
earning periods, keeps one settlement row per period, and lets admins
record payouts.

Key Features:
- Pure period assignment (no double assignment, one active period per runner)
- System fee calculation for errands and commissions
- Reconciliation of computed periods against persisted rows
- Mark-as-paid with a per-period processing lock and read-back verification
- Overdue tracking and runner account locking

Architecture:
- Models: Settlement
- Services: fees, period_assignment, loaders, procedures, reconciliation,
  settlement_payment
- Views: admin-only ViewSet (list, mark_paid, account_check)
- Commands: reconcile_settlements, settlement_account_check
"""
