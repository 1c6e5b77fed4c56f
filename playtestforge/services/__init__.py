"""
PlaytestForge services.

Card versioning, history, finalization and forum thread reconciliation.
"""
