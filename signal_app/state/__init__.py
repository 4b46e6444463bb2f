"""
Signal lifecycle module.

Signals move PENDING → ACTIVE → COMPLETED; PENDING and ACTIVE signals may
also be deleted by expiry.
"""
