"""Column types shared by the order and category models.

Orders must load identically from PostgreSQL (production) and SQLite (local
runs and tests), so the models only use these portable aliases.
"""
from sqlalchemy import JSON, Uuid

# Order line items: plain JSON, not JSONB, so SQLite can store them too
JSONType = JSON

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid
