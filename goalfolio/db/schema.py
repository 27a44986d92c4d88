"""DuckDB schema definitions for goalfolio.

Contains DDL statements for every table the services read or write:
- transactions: Mutual-fund purchase/redemption records
- current_portfolio: One valued row per (user, folio, scheme)
- nav_data: Latest AMFI NAV per scheme code
- goals / goal_scheme_mapping: Financial goals and the holdings funding them
- stocks: Equity holdings per exchange
- nps_funds / nps_holdings / nps_nav: National Pension System holdings
- stock_prices_cache: Last fetched quote per symbol, converted to INR

Foreign keys are not declared; deletes cascade in the store modules.
Natural keys (user + stock code + exchange, user + NPS fund, goal +
source) are folded into deterministic primary keys so that
``INSERT OR REPLACE`` stays a single-constraint upsert.

"""

from __future__ import annotations

# ── Mutual-fund transactions ──

CREATE_TRANSACTIONS = """
CREATE TABLE IF NOT EXISTS transactions (
    id                VARCHAR PRIMARY KEY,
    user_id           VARCHAR NOT NULL,
    date              DATE NOT NULL,
    scheme_name       VARCHAR NOT NULL,
    folio             VARCHAR NOT NULL,
    isin              VARCHAR,
    amount            DOUBLE NOT NULL,
    transaction_type  VARCHAR NOT NULL,
    price             DOUBLE,
    units             DOUBLE NOT NULL DEFAULT 0,
    unit_balance      DOUBLE,
    created_at        TIMESTAMP DEFAULT current_timestamp
);
"""

# ── Current portfolio ──

CREATE_CURRENT_PORTFOLIO = """
CREATE TABLE IF NOT EXISTS current_portfolio (
    id                    VARCHAR PRIMARY KEY,
    user_id               VARCHAR NOT NULL,
    folio                 VARCHAR NOT NULL,
    scheme_name           VARCHAR NOT NULL,
    isin                  VARCHAR,
    total_invested        DOUBLE NOT NULL DEFAULT 0,
    current_nav           DOUBLE,
    latest_unit_balance   DOUBLE NOT NULL DEFAULT 0,
    current_value         DOUBLE NOT NULL DEFAULT 0,
    return_amount         DOUBLE NOT NULL DEFAULT 0,
    return_percentage     DOUBLE NOT NULL DEFAULT 0,
    last_nav_update_date  DATE,
    latest_date           DATE,
    updated_at            TIMESTAMP DEFAULT current_timestamp
);
"""

# ── AMFI NAV data ──

CREATE_NAV_DATA = """
CREATE TABLE IF NOT EXISTS nav_data (
    scheme_code            VARCHAR PRIMARY KEY,
    isin_div_payout        VARCHAR,
    isin_div_reinvestment  VARCHAR,
    scheme_name            VARCHAR NOT NULL,
    nav_value              DOUBLE NOT NULL,
    nav_date               DATE NOT NULL,
    updated_at             TIMESTAMP DEFAULT current_timestamp
);
"""

# ── Goals ──

CREATE_GOALS = """
CREATE TABLE IF NOT EXISTS goals (
    id              VARCHAR PRIMARY KEY,
    user_id         VARCHAR NOT NULL,
    name            VARCHAR NOT NULL,
    description     VARCHAR DEFAULT '',
    target_amount   DOUBLE NOT NULL,
    target_date     DATE NOT NULL,
    current_amount  DOUBLE NOT NULL DEFAULT 0,
    created_at      TIMESTAMP DEFAULT current_timestamp,
    updated_at      TIMESTAMP DEFAULT current_timestamp
);
"""

CREATE_GOAL_SCHEME_MAPPING = """
CREATE TABLE IF NOT EXISTS goal_scheme_mapping (
    id                     VARCHAR PRIMARY KEY,
    goal_id                VARCHAR NOT NULL,
    scheme_name            VARCHAR NOT NULL,
    folio                  VARCHAR NOT NULL DEFAULT '',
    allocation_percentage  DOUBLE NOT NULL DEFAULT 100
        CHECK (allocation_percentage > 0 AND allocation_percentage <= 100),
    source_type            VARCHAR NOT NULL DEFAULT 'mutual_fund'
        CHECK (source_type IN ('mutual_fund', 'stock', 'nps')),
    source_id              VARCHAR,
    created_at             TIMESTAMP DEFAULT current_timestamp
);
"""

# ── Stocks ──

CREATE_STOCKS = """
CREATE TABLE IF NOT EXISTS stocks (
    id             VARCHAR PRIMARY KEY,
    user_id        VARCHAR NOT NULL,
    stock_code     VARCHAR NOT NULL,
    quantity       DOUBLE NOT NULL,
    purchase_date  DATE NOT NULL,
    exchange       VARCHAR NOT NULL DEFAULT 'NSE',
    created_at     TIMESTAMP DEFAULT current_timestamp
);
"""

CREATE_STOCK_PRICES_CACHE = """
CREATE TABLE IF NOT EXISTS stock_prices_cache (
    symbol               VARCHAR PRIMARY KEY,
    price_inr            DOUBLE NOT NULL,
    price_original       DOUBLE NOT NULL,
    currency             VARCHAR NOT NULL,
    exchange_rate_to_inr DOUBLE NOT NULL DEFAULT 1,
    updated_at           TIMESTAMP DEFAULT current_timestamp
);
"""

# ── NPS ──

CREATE_NPS_FUNDS = """
CREATE TABLE IF NOT EXISTS nps_funds (
    fund_code   VARCHAR PRIMARY KEY,
    fund_name   VARCHAR NOT NULL,
    created_at  TIMESTAMP DEFAULT current_timestamp
);
"""

CREATE_NPS_HOLDINGS = """
CREATE TABLE IF NOT EXISTS nps_holdings (
    id          VARCHAR PRIMARY KEY,
    user_id     VARCHAR NOT NULL,
    fund_code   VARCHAR NOT NULL,
    units       DOUBLE NOT NULL,
    as_of_date  DATE NOT NULL,
    created_at  TIMESTAMP DEFAULT current_timestamp
);
"""

CREATE_NPS_NAV = """
CREATE TABLE IF NOT EXISTS nps_nav (
    fund_code   VARCHAR PRIMARY KEY,
    nav         DOUBLE NOT NULL,
    nav_date    DATE NOT NULL,
    updated_at  TIMESTAMP DEFAULT current_timestamp
);
"""

# All DDL statements in creation order
ALL_TABLES = [
    CREATE_TRANSACTIONS,
    CREATE_CURRENT_PORTFOLIO,
    CREATE_NAV_DATA,
    CREATE_GOALS,
    CREATE_GOAL_SCHEME_MAPPING,
    CREATE_STOCKS,
    CREATE_STOCK_PRICES_CACHE,
    CREATE_NPS_FUNDS,
    CREATE_NPS_HOLDINGS,
    CREATE_NPS_NAV,
]
