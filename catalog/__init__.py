"""
Catalog package: authors, books and the users that may access them.

This package contains:
- MongoDB connection management and collection adapters
- Author and Book repositories with cross-reference validation
- Read-time enrichment of reference arrays
- Password hashing, token generation and bearer-token authentication
"""

__version__ = "1.0.0"
