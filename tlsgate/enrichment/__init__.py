"""tlsgate response enrichment.

Public API:
    ResponseEnricher  — enricher protocol
    HstsEnricher      — Strict-Transport-Security enricher
    default_enrichers — enrichers installed when none are given
    enrich_response   — run enrichers with isolated failures
"""
from tlsgate.enrichment.enrichers import (
    HstsEnricher,
    ResponseEnricher,
    default_enrichers,
    enrich_response,
)

__all__ = ["HstsEnricher", "ResponseEnricher", "default_enrichers", "enrich_response"]
