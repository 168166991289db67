"""
Tether -- local-first connectivity control.

Every outbound network call passes through a single Connectivity Manager
that enforces the user's trust policy, keeps an audit ledger of what was
sent, and never fails open.
"""

__version__ = "1.2.0"
__author__ = "Tether Team"
