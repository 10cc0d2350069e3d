"""
Parley - iterative translation assistant.

The client side of a session-authenticated translation API: a gateway
that establishes sessions and recovers from expiry, typed operations for
each endpoint, and the session state a translation UI renders.
"""

__version__ = "0.1.0"
