"""Session summary: aggregation and time formatting over the local attempt history."""
from datetime import datetime, timezone
from typing import List, Dict, Optional


def format_time(seconds) -> str:
    """Render seconds as '3m 7s'."""
    seconds = int(round(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}m {secs}s"


def format_clock(seconds) -> str:
    """Render seconds as a zero-padded HH:MM:SS clock."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def summarize(attempts: List[Dict], session_started_at: datetime, now: Optional[datetime] = None) -> Optional[Dict]:
    """
    Aggregate a finished (or partial) run.

    Args:
        attempts: local attempt history, in answer order.
            Expected keys: question_id, selected_answer, is_correct, time_spent
        session_started_at: when the sampled set became available
        now: end of the run (defaults to the current time)

    Returns:
        None when nothing was answered, else totals, accuracy (0-100), timings
        and a per-question list
    """
    if not attempts:
        return None
    now = now or datetime.now(timezone.utc)

    total = len(attempts)
    correct = sum(1 for a in attempts if a["is_correct"])
    total_time = sum(a["time_spent"] for a in attempts)

    return {
        "total_questions": total,
        "correct_count": correct,
        "accuracy": correct / total * 100,
        "total_time_spent": total_time,
        "average_time_per_question": total_time / total,
        "session_time": round((now - session_started_at).total_seconds()),
        "questions": [
            {
                "number": i + 1,
                "question_id": a["question_id"],
                "is_correct": a["is_correct"],
                "time_spent": a["time_spent"],
            }
            for i, a in enumerate(attempts)
        ],
    }
