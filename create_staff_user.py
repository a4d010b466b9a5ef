#!/usr/bin/env python3
"""
Create or re-key an HR/admin dashboard account in Supabase.
Run from the project root: python3 create_staff_user.py

Set STAFF_EMAIL and STAFF_INITIAL_PASSWORD in environment before running.
Example: STAFF_EMAIL=hr@company.com STAFF_INITIAL_PASSWORD='YourSecurePassword123!' python3 create_staff_user.py
"""
import os
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from app.config import get_config
from app.services.auth_service import AuthService
from app.utils.exceptions import PortalError


def main():
    config = get_config()
    auth_service = AuthService(config)

    email = os.getenv("STAFF_EMAIL")
    password = os.getenv("STAFF_INITIAL_PASSWORD")
    name = os.getenv("STAFF_NAME", "HR Admin")
    role = os.getenv("STAFF_ROLE", "hr")

    if not email or not password:
        print("ERROR: STAFF_EMAIL and STAFF_INITIAL_PASSWORD environment variables are required.")
        sys.exit(1)

    if len(password) < 12:
        print("ERROR: STAFF_INITIAL_PASSWORD must be at least 12 characters long.")
        sys.exit(1)

    try:
        user = auth_service.create_staff_user(email=email, password=password, name=name, role=role)
    except PortalError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"Staff user ready: email={user['email']} role={user['role']}")
    print("Password has been set from STAFF_INITIAL_PASSWORD environment variable.")


if __name__ == "__main__":
    main()
