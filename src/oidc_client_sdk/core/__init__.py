"""Core components for the OIDC client SDK.

Identity token parsing, the pending-request store, response dispatch and
the HTTP transport boundary.
"""
