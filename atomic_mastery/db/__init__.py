"""
Database Module - SQLAlchemy persistence for mastery records.

Components:
- database: engines, init_db and session scopes
- models: declarative table models
- repositories: SQL implementations of the engine's store/provider protocols
"""
