"""
jsonb_store.db

Persistence package (SQLAlchemy Core over SQLite).

Responsibilities:
- Build engines that speak to a single SQLite file.
- Describe the document/signal table shapes and the statements issued against them.
"""

# Package marker; the repositories import the submodules directly.
