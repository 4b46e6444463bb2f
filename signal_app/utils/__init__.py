"""
Utility functions module.

Time Semantics:
- Persisted timestamps are UTC epoch seconds
- Client-facing timestamps are epoch milliseconds
- Request ranges are evaluated in the configured reference timezone
"""
