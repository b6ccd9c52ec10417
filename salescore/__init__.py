"""Star-schema sales model and aggregate queries (UI-agnostic).

This package contains:
- snapshot loading (XLSX/CSV -> pandas star schema)
- calendar arithmetic on YYYYMMDD date keys
- filter normalization
- measures: total sales, transactions, average transaction value, top-N, month-over-month variance
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
