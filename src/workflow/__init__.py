"""
Editorial Workflow Module
=========================

Bounded Context for the manuscript lifecycle of the journal.

Responsibilities:
- Validate status transitions against the allowed-transition table
- Record each transition as an append-only history entry
- Compute SLA deadlines and classify their standing
- Dispatch deadline reminders on a fixed cadence
- Approve, reject or cancel role escalation requests
"""

__version__ = "1.0.0"
