"""tasktracker — multi-user task tracking backend.

Users register, log in with email/password, and manage a private list of
tasks. Every task query is scoped to the authenticated owner.
"""

__version__ = "0.1.0"
