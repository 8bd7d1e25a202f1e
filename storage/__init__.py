"""
Storage Package.

This package manages all page tree persistence.

Modules:
- config: Database settings from the environment
- database: Engine, sessions and schema management
- models/: ORM records
- repositories/: Data access layer
"""
