"""tlsgate redirection.

Public API:
    LocationRedirector — redirector protocol
    StandardRedirector — default redirector (302/307 or warning page)
"""
from tlsgate.redirection.redirector import LocationRedirector, StandardRedirector

__all__ = ["LocationRedirector", "StandardRedirector"]
