"""Outbound HTTP client — dispatch, session continuity, audience routing.

Learn: layered leaf to root:
1. RequestDispatcher → one httpx transport per audience, no auth knowledge
2. SessionController → wraps a dispatcher with attach/refresh/replay
3. AudienceRouter → one independent controller per audience

Callers only ever touch the router (or the AuthApi hanging off it).
"""
