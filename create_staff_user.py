#!/usr/bin/env python3
"""
Creates (or re-keys) an admin or dean account.

    python create_staff_user.py admin someone@psu.edu.sa 'NewPassw0rd' --name "Student Activities"
    python create_staff_user.py dean dean@psu.edu.sa 'NewPassw0rd' --reset
"""

import sys
import argparse

from dotenv import load_dotenv

load_dotenv()

from clubhub import create_app  # noqa: E402
from database import seed_staff_account  # noqa: E402
from clubhub.utils import password_policy_error  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create an admin or dean account")
    parser.add_argument('role', choices=['admin', 'dean'])
    parser.add_argument('email')
    parser.add_argument('password')
    parser.add_argument('--name', help="Display name (defaults to the role)")
    parser.add_argument('--reset', action='store_true', help="Replace the password of an existing account")
    args = parser.parse_args(argv)

    policy_error = password_policy_error(args.password, args.password)
    if policy_error:
        print(f"  ✗ {policy_error}")
        return 1

    app = create_app()
    with app.app_context():
        try:
            user = seed_staff_account(args.email, args.password, args.role,
                                      args.name or args.role.capitalize(), reset_password=args.reset)
        except ValueError as e:
            print(f"  ✗ {str(e)}")
            return 1
        print(f"  ✓ {args.role} account ready: {user.email} (id {user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
