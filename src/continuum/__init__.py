"""Continuum — session continuity for the consulting platform's web clients.

The edge HTTP layer every customer-facing and admin screen talks through:
it attaches credentials and tenant context to outbound calls, recovers
from expired access tokens with a single refresh + replay, and ends the
session cleanly when recovery is impossible.
"""

__version__ = "0.1.0"
