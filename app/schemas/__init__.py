"""
Pydantic schema package.

Domain-specific schema modules live here:
- applications.py (records, submissions, dashboard summary)
- auth.py (staff login)
"""
