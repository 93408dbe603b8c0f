"""
MCP tools for the library circulation server.

Each tool is a dictionary with its name, description, JSON schema and async
handler, ready for registration on the FastMCP server.
"""

from .circulation import calculate_fine, create_loan, find_overdue, return_loan

all_tools = [
    create_loan,
    return_loan,
    calculate_fine,
    find_overdue,
]

__all__ = [
    "all_tools",
    "calculate_fine",
    "create_loan",
    "find_overdue",
    "return_loan",
]
