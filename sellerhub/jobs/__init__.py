"""
Background Jobs Module

Handles scheduled tasks for:
- Daily seller payout batch
- Weekly payout report
"""
