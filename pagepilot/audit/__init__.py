"""
Audit Module for PagePilot.

Summaries of the publish-guardrail audit log for observability endpoints.
"""

from .summary import (
    SupAuditRow,
    SupSummary,
    derive_sup_rates,
    load_sup_audit_rows,
    nearest_rank_p95,
    summarize_sup_audit,
)

__all__ = [
    "SupAuditRow",
    "SupSummary",
    "derive_sup_rates",
    "load_sup_audit_rows",
    "nearest_rank_p95",
    "summarize_sup_audit",
]
