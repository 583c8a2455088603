#!/usr/bin/env python3
"""
Admin User Seed Script
Creates (or upgrades) an admin account and seeds the demo dataset.
Public signup never creates admins; this script is the only way to get one.

Usage:
    python -m scripts.seed_admin <email> <password> [--no-demo]

Example:
    python -m scripts.seed_admin admin@letterdesk.com securepassword123

Reads DATABASE_URL / RECORD_STORE / LOCAL_STORE_DIR from the environment.
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import RECORD_STORE_LOCAL, get_settings
from app.database import SessionLocal, configure_database, init_db
from app.errors import LetterDeskError
from app.main import seed_demo_data
from app.models.records import StoredUser, UserRole, normalize_email
from app.services.credentials import hash_secret
from app.services.record_store import JsonFileRecordStore, RecordStore, SqlRecordStore


def create_admin_user(store: RecordStore, email: str, password: str) -> bool:
    """Create an admin user, or upgrade an existing account to admin."""
    key = normalize_email(email)
    users = store.users.get_all()
    existing = users.get(key)

    if existing:
        if existing.role == UserRole.ADMIN:
            print(f"User '{key}' is already an admin.")
            return False
        # Upgrade existing user to admin
        existing.role = UserRole.ADMIN
        store.users.save_all(users)
        print(f"Upgraded existing user '{key}' to admin role.")
        return True

    users[key] = StoredUser(
        id=str(uuid4()),
        email=key,
        password_hash=hash_secret(password),
        role=UserRole.ADMIN,
    )
    store.users.save_all(users)

    print(f"Admin user created successfully!")
    print(f"  Email: {key}")
    print(f"  Role: admin")
    return True


def main():
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    seed_demo = "--no-demo" not in sys.argv
    if len(args) != 2:
        print(__doc__)
        sys.exit(1)

    email, password = args

    # Basic validation
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    settings = get_settings()
    db = None
    if settings.record_store == RECORD_STORE_LOCAL:
        store = JsonFileRecordStore(settings.local_store_dir)
    else:
        if not settings.database_url:
            print("Error: DATABASE_URL is not set.")
            sys.exit(1)
        configure_database(settings.database_url)
        init_db()
        db = SessionLocal()
        store = SqlRecordStore(db)

    try:
        success = create_admin_user(store, email, password)
        if seed_demo:
            seed_demo_data(store)
            print("Demo data seeded (existing demo data is left untouched).")
    except LetterDeskError as e:
        print(f"Error creating admin user: {e.message}")
        success = False
    finally:
        if db is not None:
            db.close()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
