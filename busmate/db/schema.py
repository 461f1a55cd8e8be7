"""Database schema DDL: accounts and the two role-specific profile tables."""

DATABASE_NAME = "BusMate.db"

# Stored in PRAGMA user_version.  Bumping it wipes every table on next open,
# see Database.upgrade().
SCHEMA_VERSION = 3

# Child tables first so foreign keys never dangle while dropping.
TABLES = ("bus_operators", "passengers", "users")

SCHEMA_DDL = """
-- ==========================================================================
-- Accounts
-- ==========================================================================
CREATE TABLE IF NOT EXISTS users (
    account_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    email           TEXT UNIQUE NOT NULL,
    password        TEXT NOT NULL,
    role            TEXT NOT NULL
                    CHECK(role IN ('passenger','bus_operator')),
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    is_verified     INTEGER NOT NULL DEFAULT 0
);

-- ==========================================================================
-- Passenger profiles
-- ==========================================================================
CREATE TABLE IF NOT EXISTS passengers (
    passenger_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id              INTEGER NOT NULL REFERENCES users(account_id),
    full_name               TEXT NOT NULL,
    phone                   TEXT,
    date_of_birth           TEXT,
    gender                  TEXT,
    address                 TEXT,
    emergency_contact_name  TEXT,
    emergency_contact_phone TEXT,
    blood_type              TEXT
);

CREATE INDEX IF NOT EXISTS idx_passengers_account ON passengers(account_id);

-- ==========================================================================
-- Bus operator profiles
-- ==========================================================================
CREATE TABLE IF NOT EXISTS bus_operators (
    operator_id             INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id              INTEGER NOT NULL REFERENCES users(account_id),
    full_name               TEXT NOT NULL,
    phone                   TEXT,
    date_of_birth           TEXT,
    gender                  TEXT,
    address                 TEXT,
    license_number          TEXT NOT NULL,
    vehicle_registration    TEXT NOT NULL,
    route_number            TEXT,
    years_experience        INTEGER NOT NULL DEFAULT 0 CHECK(years_experience >= 0),
    vehicle_type            TEXT,
    operating_company       TEXT,
    emergency_contact_name  TEXT,
    emergency_contact_phone TEXT
);

CREATE INDEX IF NOT EXISTS idx_bus_operators_account ON bus_operators(account_id);
"""

DROP_DDL = "\n".join(f"DROP TABLE IF EXISTS {name};" for name in TABLES)
