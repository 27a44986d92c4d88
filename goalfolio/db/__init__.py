"""goalfolio database layer.

Provides DuckDB-based storage for mutual-fund transactions, the valued
current portfolio, goals and their mappings, stocks, NPS holdings, and
the market data (AMFI NAVs, NPS NAVs, quote cache) that values them.
"""
