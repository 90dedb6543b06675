# src/stakeledger/runtime/apply/__init__.py
"""Domain-specific apply modules.

These modules implement deterministic ledger state transitions for subsets
of settlement types. runtime/domain_apply.py routes envelopes to them.

NOTE: Keep this package import-safe (no imports of domain_apply here).
"""

from __future__ import annotations

__all__ = [
    "admin",
    "staking",
]
