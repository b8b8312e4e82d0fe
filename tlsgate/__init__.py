"""tlsgate — per-path HTTP/HTTPS switching for ASGI applications.

Public API:
    Settings, Mode, load_settings — configuration
    SettingsStore                 — atomically swappable settings snapshot
    RequestSecurity               — secure | insecure | ignore
    EvaluationContext             — per-request view of the ASGI scope
    SecurityPipeline, Decision    — evaluate → enforce → redirect-or-enrich
    SecuritySwitchMiddleware      — Starlette middleware
    EvaluateRequestArgs           — override hook slot
"""
from tlsgate.config import Mode, Settings, load_settings
from tlsgate.evaluation.overrides import EvaluateRequestArgs
from tlsgate.middleware import SecuritySwitchMiddleware
from tlsgate.models.request import EvaluationContext, RequestSecurity
from tlsgate.pipeline import Decision, SecurityPipeline
from tlsgate.store import SettingsStore

__all__ = [
    "Decision",
    "EvaluateRequestArgs",
    "EvaluationContext",
    "Mode",
    "RequestSecurity",
    "SecurityPipeline",
    "SecuritySwitchMiddleware",
    "Settings",
    "SettingsStore",
    "load_settings",
]
