"""Data models shared by the reconciliation engine."""
