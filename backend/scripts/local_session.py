#!/usr/bin/env python3
"""
Local Session Client
Signs in against the local (JSON file) record store and keeps the session
between runs in the store directory, so later commands reuse it.

Usage:
    python -m scripts.local_session login <email> <password>
    python -m scripts.local_session whoami
    python -m scripts.local_session letters
    python -m scripts.local_session logout

Reads LOCAL_STORE_DIR / JWT_SECRET_KEY from the environment.
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import get_settings
from app.errors import LetterDeskError
from app.services.letter_facade import LetterFacade
from app.services.record_store import JsonFileRecordStore
from app.services.session_manager import open_local_session
from app.services.tokens import TokenIssuer


def run(manager, command: str, args) -> bool:
    if command == "login":
        if len(args) != 2:
            print(__doc__)
            return False
        session = manager.login(*args)
        print(f"Signed in as {session.email} ({session.role.value})")
        return True

    if command == "logout":
        manager.logout()
        print("Signed out.")
        return True

    session = manager.current_session
    if session is None:
        print("Not signed in. Run: python -m scripts.local_session login <email> <password>")
        return False

    if command == "whoami":
        print(f"{session.email} ({session.role.value})")
        return True

    if command == "letters":
        letters = LetterFacade(manager.store, session).fetch_letters()
        if not letters:
            print("No letters yet.")
        for letter in letters:
            print(f"  [{letter.status.value}] {letter.title} ({letter.id})")
        return True

    print(__doc__)
    return False


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    settings = get_settings()
    store = JsonFileRecordStore(settings.local_store_dir, seed_demo_letters=settings.seed_demo_data)
    tokens = TokenIssuer(settings.jwt_secret_key, expire_hours=settings.access_token_expire_hours)

    try:
        manager = open_local_session(store, tokens)
        success = run(manager, sys.argv[1], sys.argv[2:])
    except LetterDeskError as e:
        print(f"Error: {e.message}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
