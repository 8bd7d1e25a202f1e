"""
Scripts Package.

Operational scripts for the page store.

Scripts:
- bootstrap_db: Schema creation, validation and start page seeding
"""
