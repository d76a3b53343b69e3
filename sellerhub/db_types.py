"""Column types shared by the payout and marketplace models.

PostgreSQL is the production backend; the test suite runs the same models on
SQLite, so only types both dialects can render are used here.
"""
from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# Event metadata payloads (plain JSON; SQLite has no JSONB)
JSONType = JSON

# Native uuid on PostgreSQL, CHAR(32) on SQLite
UUIDType = PG_UUID

# Amounts in the settlement currency: 12 integer digits, 2 decimals
MoneyType = Numeric(14, 2)
