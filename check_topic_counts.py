"""
Report topics whose cached question_count disagrees with the real number of questions.
Run: python check_topic_counts.py
      python check_topic_counts.py --fix            # rewrite the cached counts
      python check_topic_counts.py --session <id>   # compare a session's correct_answers with its attempts
"""
import argparse
import logging
import sys
from pathlib import Path

path = Path(__file__).resolve().parent
if str(path) not in sys.path:
    sys.path.insert(0, str(path))

from db import get_all_topics, get_supabase_uncached, get_true_question_counts, refresh_topic_question_counts
from src.database import DatabaseClient, FetchError


def find_mismatches(topics: list[dict], true_counts: dict) -> list[dict]:
    """Topics whose question_count differs from the number of questions referencing them."""
    out = []
    for topic in topics:
        actual = true_counts.get(topic["id"], 0)
        cached = topic.get("question_count") or 0
        if cached != actual:
            out.append({"id": topic["id"], "title": topic.get("title"), "cached": cached, "actual": actual})
    return out


def check_session(db: DatabaseClient, session_id: str) -> bool:
    """A completed session's correct_answers must equal its correct attempt rows."""
    try:
        row = db.get_practice_session(session_id)
        attempts = db.get_session_attempts(session_id)
    except FetchError as e:
        print(f"Could not load session {session_id}: {e}")
        return False
    derived = sum(1 for a in attempts if a.get("is_correct"))
    stored = row.get("correct_answers") or 0
    print(f"Session {session_id}: stored correct_answers={stored}, correct attempts={derived}, attempts={len(attempts)}")
    if row.get("completed_at") is None:
        print("  (session not completed yet)")
    return stored == derived


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--fix", action="store_true", help="Rewrite mismatched topics.question_count")
    parser.add_argument("--session", default=None, metavar="ID", help="Check one practice session instead")
    args = parser.parse_args()

    try:
        client = get_supabase_uncached()
    except ValueError:
        print("Set SUPABASE_URL and SUPABASE_KEY in .env")
        sys.exit(1)

    if args.session:
        ok = check_session(DatabaseClient(client), args.session)
        sys.exit(0 if ok else 1)

    topics = get_all_topics(client)
    mismatches = find_mismatches(topics, get_true_question_counts(client))

    print()
    print("=" * 60)
    print(f"TOPIC QUESTION COUNTS ({len(topics)} topics)")
    print("=" * 60)
    if not mismatches:
        print("All cached counts match.")
        return
    for m in mismatches:
        print(f"  cached={m['cached']:5d}  actual={m['actual']:5d}  {m['title']!r} ({m['id']})")
    if args.fix:
        updated = refresh_topic_question_counts(client, [m["id"] for m in mismatches])
        print(f"\nUpdated {len(updated)} topic(s).")
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    main()
