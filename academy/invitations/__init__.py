"""Invitation workflow: issue, resolve, accept and cancel role invitations."""
