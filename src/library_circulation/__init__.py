"""
Library Circulation Core.

Keeps a library's stock counts, loan states and overdue fines consistent
under concurrent access.

Key Components:
- models: Pydantic models for books, members and loans
- database: SQLAlchemy schema, sessions and repositories
- circulation: eligibility, fines, overdue scanning and the loan coordinator
- config: Configuration management with pydantic-settings
- tools: MCP tools exposing the circulation operations
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
