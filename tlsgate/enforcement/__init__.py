"""tlsgate enforcement.

Public API:
    SecurityEnforcer     — enforcer protocol
    SchemeSwitchEnforcer — default enforcer
"""
from tlsgate.enforcement.enforcer import SchemeSwitchEnforcer, SecurityEnforcer

__all__ = ["SchemeSwitchEnforcer", "SecurityEnforcer"]
