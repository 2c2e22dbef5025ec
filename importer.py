"""Ingest .jsonl questions into one topic; bulk UPSERT into questions, then refresh the topic's question_count."""
import json
import argparse
import logging
from pathlib import Path
from uuid import uuid5, NAMESPACE_DNS

from db import get_supabase_uncached, upsert_questions_bulk, refresh_topic_question_counts
from src.database import OPTION_IDS


def build_options(raw_options) -> list[dict] | None:
    """
    Accept either ["text", ...] (ids assigned A, B, C...) or [{"id", "text"}, ...].
    Returns None for fewer than 2 options or duplicate ids.
    """
    if not isinstance(raw_options, list) or len(raw_options) < 2:
        return None
    options = []
    for i, opt in enumerate(raw_options[: len(OPTION_IDS)]):
        if isinstance(opt, dict):
            option_id = str(opt.get("id") or OPTION_IDS[i])
            text = str(opt.get("text") or "")
        else:
            option_id = OPTION_IDS[i]
            text = str(opt)
        options.append({"id": option_id, "text": text})
    if len({o["id"] for o in options}) != len(options):
        return None
    return options


def parse_line(line: str, topic_id: str) -> dict | None:
    """Parse one JSONL line into a questions row. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    source_id = raw.get("question_id")
    text = (raw.get("text") or raw.get("question_text") or "").strip()
    if not source_id or not text:
        return None
    options = build_options(raw.get("options"))
    if not options:
        return None

    correct = raw.get("correct_answer")
    if isinstance(correct, int) and not isinstance(correct, bool) and 0 <= correct < len(options):
        correct = options[correct]["id"]
    correct = str(correct) if correct is not None else ""
    # a question must point at exactly one of its own options
    if correct not in {o["id"] for o in options}:
        return None

    rationale = raw.get("rationale") or raw.get("explanation") or ""
    if isinstance(rationale, list):
        rationale = " ".join(str(s) for s in rationale)

    return {
        "id": str(uuid5(NAMESPACE_DNS, f"{topic_id}:{source_id}")),
        "topic_id": topic_id,
        "text": text,
        "options": options,
        "correct_answer": correct,
        "rationale": rationale,
    }


def load_and_transform(path: Path, topic_id: str):
    """Read JSONL and yield transformed question rows."""
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            row = parse_line(line, topic_id)
            if row:
                yield row


def run_import(jsonl_path: Path, topic_id: str, chunk_size: int = 200, dry_run: bool = False):
    if not jsonl_path.exists():
        raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
    rows = list(load_and_transform(jsonl_path, topic_id))
    if dry_run:
        print(f"Dry run: would upsert {len(rows)} questions into topic {topic_id} from {jsonl_path}")
        if rows:
            print("Sample row:", rows[0])
        return
    client = get_supabase_uncached()
    upsert_questions_bulk(client, rows, chunk_size=chunk_size)
    refresh_topic_question_counts(client, [topic_id])
    print(f"Upserted {len(rows)} questions into topic {topic_id} from {jsonl_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import a JSONL question file into one Supabase topic.")
    parser.add_argument("jsonl", help="Path to .jsonl (one question per line)")
    parser.add_argument("--topic-id", required=True, help="Topic UUID the questions belong to")
    parser.add_argument("--chunk-size", type=int, default=200, help="Upsert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not upsert")
    args = parser.parse_args()
    run_import(Path(args.jsonl), args.topic_id, chunk_size=args.chunk_size, dry_run=args.dry_run)
