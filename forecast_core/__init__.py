"""Core (UI-agnostic) forecast reporting logic.

This package contains:
- the dimension/measure registry
- request normalization
- pivot aggregation over raw forecast records
- guidance (derived metric) parsing and evaluation
- item -> brand -> total rollups
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
