"""
Shared Kernel Module
====================

Generic infrastructure shared by the editorial workflow context:
structured logging and HTTP middleware.

DO NOT add workflow business rules to the shared kernel.
"""

__version__ = "1.0.0"
