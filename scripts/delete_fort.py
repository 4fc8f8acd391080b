#!/usr/bin/env python3
"""
Delete a saved fort by id (or every fort with a given name).
Usage: python scripts/delete_fort.py <fort_id | --name "Fort Name">
From repo root with PYTHONPATH=. or from backend: python -m scripts.delete_fort <fort_id>
"""
import sys
import os

# Allow running from repo root or backend
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from backend.api.database import SessionLocal, init_db
from backend.api.models import Fort


def main() -> None:
    args = sys.argv[1:]
    if not args:
        print('Usage: python scripts/delete_fort.py <fort_id | --name "Fort Name">', file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        if args[0] == "--name":
            name = " ".join(args[1:]).strip()
            if not name:
                print("Error: provide a fort name.", file=sys.stderr)
                sys.exit(1)
            forts = db.query(Fort).filter(Fort.fort_name == name).all()
        else:
            forts = db.query(Fort).filter(Fort.id == args[0].strip()).all()

        if not forts:
            print(f"No fort found for: {' '.join(args)!r}")
            return
        for fort in forts:
            print(f"Deleted fort {fort.fort_name!r} ({fort.id}), round {fort.round}, phase {fort.phase}.")
            db.delete(fort)
        db.commit()
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
