"""Core (UI-agnostic) dashboard logic.

This package contains:
- typed records and spreadsheet ingestion (XLSX/CSV -> records)
- filter normalization and predicates
- per-domain compute functions (JSON-serializable payloads)
- goal compliance, session state and the JSON store
- chart helpers (Altair -> Vega-Lite spec dict)
"""
