"""
Infrastructure Layer
=====================

Cross-cutting technical concerns:
- Structured logging setup
- Audit records
"""
