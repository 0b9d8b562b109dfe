"""Credential handling for the outbound client.

Learn: two pieces:
1. tokens → the CredentialPair model and parsing of login/refresh bodies
2. store → durable per-audience storage of that pair (+ cached profile)

Each audience only ever sees its own namespace of the store.
"""
