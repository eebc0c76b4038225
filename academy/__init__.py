"""
Academy Admin - school administration back end.

Session-based sign-in, role-based access control, invitation workflow
and password-reset workflow.
"""

__version__ = "0.1.0"
