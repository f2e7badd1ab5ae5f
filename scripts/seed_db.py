"""
Seed script for the CivicTrack mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force mock DB even if Firebase is configured: python scripts/seed_db.py --apply --force-mock
  - Load documents from a JSON file instead of the built-in demo set:
    python scripts/seed_db.py --apply --file db_seed.json

Behavior:
  - Seed shape is {collection: {doc_id: data}}.
  - Gets DB via `civictrack.config.firebase.get_db()`, which returns the mock DB or
    real Firestore depending on settings.
  - Writes each document with set(), so re-running overwrites the demo records.

NOTE: The mock DB only survives the run when MOCK_DB_PATH points at a JSON file.
"""

import argparse
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from civictrack.config.firebase import get_db
from civictrack.core.settings import settings

Seed = Dict[str, Dict[str, Dict[str, Any]]]


def demo_seed() -> Seed:
    now = datetime.now(timezone.utc)

    def issue(title, category, lat, lng, status="Reported", user="citizen-1", days_ago=0, **extra):
        created = now - timedelta(days=days_ago)
        data = {
            "title": title,
            "description": f"{title} reported by a resident",
            "category": category,
            "status": status,
            "is_visible": True,
            "user": user,
            "is_anonymous": user is None,
            "location": {"latitude": lat, "longitude": lng},
            "address": None,
            "images": [],
            "views": 0,
            "upvotes": 0,
            "spam_votes": 0,
            "priority": "Medium",
            "estimated_resolution_time": None,
            "admin_notes": None,
            "created_at": created,
            "last_status_update": created,
            "updated_at": created,
        }
        data.update(extra)
        return data

    return {
        "users": {
            "admin-1": {"username": "admin", "role": "admin", "is_banned": False, "issues_reported": 0},
            "citizen-1": {"username": "alice", "role": "user", "is_banned": False, "issues_reported": 3},
            "citizen-2": {"username": "bob", "role": "user", "is_banned": False, "issues_reported": 0},
        },
        "issues": {
            "demo-pothole": issue("Pothole on Main Street", "Road", 40.7128, -74.0060, days_ago=3),
            "demo-streetlight": issue(
                "Streetlight out", "Lighting", 40.7180, -74.0020, status="In Progress", days_ago=2, priority="High",
            ),
            "demo-leak": issue("Water main leak", "Water", 40.7300, -73.9950, status="Resolved", days_ago=10),
            "demo-litter": issue("Overflowing bins", "Cleanliness", 40.7060, -74.0090, user=None, days_ago=1),
        },
    }


def load_seed(path: str) -> Seed:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_to_db(db: Any, seed: Seed, apply: bool = False):
    # db is either MockFirestore or a real firestore client
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            db.collection(collection).document(doc_id).set(data)
            print(f"Wrote: {collection}/{doc_id}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if Firebase is configured")
    parser.add_argument("--file", help="JSON seed file ({collection: {doc_id: data}})")
    args = parser.parse_args()

    if args.file:
        if not os.path.exists(args.file):
            print(f"Seed file not found: {args.file}")
            return
        seed = load_seed(args.file)
    else:
        seed = demo_seed()

    if args.force_mock:
        print("Forcing mock DB usage for this run.")
        # Settings are read once at import, so flipping the attribute is enough
        settings.USE_MOCK_DB = True

    db = get_db()

    write_to_db(db, seed, apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
