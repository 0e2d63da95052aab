"""
FastAPI RESTful API for the Library Catalog.

This module provides a REST API for:
- Author and book management with reference checks
- User registration and login
- Bearer-token authentication
"""
