"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Stored scales; the ledger never rounds finer than the columns hold
MONEY_SCALE = 2
RATE_SCALE = 4

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Currency amounts in major units (baht)
MoneyType = Numeric(12, MONEY_SCALE, asdecimal=True)

# Commission rate as a fraction, e.g. 0.7000
RateType = Numeric(5, RATE_SCALE, asdecimal=True)
