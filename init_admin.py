#!/usr/bin/env python3
"""
Initialize default staff users for the EHR system.
Run with: python3 init_admin.py   (or: flask --app wsgi seed-users)
"""
from ehr import create_app
from ehr.constants import Role
from ehr.extensions import db
from ehr.seeds import DEFAULT_USERS, seed_default_users


def create_users():
    """Create default users"""
    app = create_app()

    with app.app_context():
        db.create_all()

        print("=" * 60)
        print("Initializing Staff Users")
        print("=" * 60)
        print()

        created = seed_default_users(db.session)
        for data in DEFAULT_USERS:
            if data['email'] in created:
                print(f"  ✓ Created: {data['email']} ({data['role']}) - Password: {data['password']}")
            else:
                print(f"  - User '{data['email']}' already exists (skipping)")

        print()
        print("=" * 60)
        print(f"✅ Created {len(created)} new user(s)")
        print("=" * 60)
        print("\n⚠️  IMPORTANT: Change passwords after first login!")
        print("\nAvailable Roles:")
        for role in Role.ALL:
            print(f"  - {role}")


if __name__ == '__main__':
    create_users()
