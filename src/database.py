"""
Database operations for exam practice.
Handles Supabase reads for packages, topics and questions, and writes for
practice sessions and question attempts.

Reads raise FetchError so the calling view can show its error panel.
Writes log and return None/False; the practice flow keeps going without them.
"""
import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional

from supabase import Client

logger = logging.getLogger(__name__)

OPTION_IDS = "ABCDEFGHIJ"

QUESTION_WITH_TOPIC = """
    *,
    topics:topic_id (
        id,
        title,
        package_id,
        exam_packages:package_id (
            title
        )
    )
"""


class FetchError(Exception):
    """A read against the store failed; the view cannot be built."""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _option_id(index: int) -> str:
    return OPTION_IDS[index] if index < len(OPTION_IDS) else str(index)


def normalize_question(row: Dict) -> Dict:
    """
    Shape a raw `questions` row (optionally joined to its topic) for the practice view.

    Options arrive as JSON; anything that is not a list of {id, text} objects is
    coerced into that shape. Missing ids are lettered A, B, C... like the importer assigns them.
    """
    options = []
    for i, opt in enumerate(row.get("options") or []):
        if isinstance(opt, dict):
            option_id = opt.get("id")
            options.append({"id": str(option_id) if option_id else _option_id(i), "text": str(opt.get("text", ""))})
        else:
            options.append({"id": _option_id(i), "text": str(opt)})

    correct_answer = str(row.get("correct_answer", ""))
    if correct_answer not in {o["id"] for o in options}:
        logger.warning(f"Question {row.get('id')}: correct_answer {correct_answer!r} is not one of its options")

    topic = row.get("topics") or row.get("topic")
    return {
        "id": row["id"],
        "text": row.get("text", ""),
        "options": options,
        "correct_answer": correct_answer,
        "rationale": row.get("rationale") or "",
        "topic_id": row.get("topic_id"),
        "topic": topic,
    }


class DatabaseClient:
    """Wrapper around Supabase client with practice-specific operations."""

    def __init__(self, client: Client):
        self.client = client

    # ============= Catalog =============

    def get_exam_packages(self) -> List[Dict]:
        """Fetch every exam package for the catalog."""
        try:
            response = self.client.table("exam_packages").select("*").execute()
        except Exception as e:
            logger.error(f"Error fetching exam packages: {e}")
            raise FetchError("Could not load exam packages") from e
        return response.data or []

    def get_exam_package(self, package_id: str) -> Dict:
        try:
            response = (
                self.client.table("exam_packages")
                .select("*")
                .eq("id", str(package_id))
                .single()
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching exam package {package_id}: {e}")
            raise FetchError(f"Could not load exam package {package_id}") from e
        if not response.data:
            raise FetchError(f"Exam package {package_id} not found")
        return response.data

    def get_topics_by_package(self, package_id: str) -> List[Dict]:
        """Fetch all topics belonging to a package."""
        try:
            response = (
                self.client.table("topics")
                .select("*")
                .eq("package_id", str(package_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching topics for package {package_id}: {e}")
            raise FetchError(f"Could not load topics for package {package_id}") from e
        return response.data or []

    def get_topic_package_id(self, topic_id: str) -> Optional[str]:
        """
        Look up the package a topic belongs to.

        Only used for back-navigation, so failures are logged and yield None.
        """
        try:
            response = (
                self.client.table("topics")
                .select("package_id")
                .eq("id", str(topic_id))
                .single()
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching topic details for {topic_id}: {e}")
            return None
        return (response.data or {}).get("package_id")

    # ============= Questions =============

    def get_questions_for_topics(self, topic_ids: List[str]) -> List[Dict]:
        """
        Fetch all questions belonging to any of the given topics.

        Args:
            topic_ids: topic UUIDs (merged into one practice run)

        Returns:
            Normalized questions, each carrying its topic and package title
        """
        try:
            response = (
                self.client.table("questions")
                .select(QUESTION_WITH_TOPIC)
                .in_("topic_id", [str(t) for t in topic_ids])
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching questions for topics {topic_ids}: {e}")
            raise FetchError("Could not load questions") from e
        rows = response.data or []
        logger.info(f"Fetched {len(rows)} questions for {len(topic_ids)} topic(s)")
        return [normalize_question(r) for r in rows]

    # ============= Sessions =============

    def create_practice_session(
        self,
        topic_id: str,
        total_questions: int,
        user_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Create a new practice session record.

        Returns:
            Session id or None if failed
        """
        try:
            session_data = {
                "topic_id": str(topic_id),
                "total_questions": total_questions,
                "user_id": str(user_id) if user_id else None,
            }
            response = self.client.table("practice_sessions").insert(session_data).execute()
            if response.data:
                return str(response.data[0]["id"])
            logger.error("Error creating session: insert returned no row")
            return None
        except Exception as e:
            logger.error(f"Error creating session: {e}")
            return None

    def record_question_attempt(
        self,
        session_id: str,
        question_id: str,
        selected_answer: str,
        is_correct: bool,
        time_spent: int
    ) -> bool:
        """Record a single answer in a session."""
        try:
            attempt_data = {
                "session_id": str(session_id),
                "question_id": str(question_id),
                "selected_answer": selected_answer,
                "is_correct": is_correct,
                "time_spent": time_spent,
            }
            self.client.table("question_attempts").insert(attempt_data).execute()
            return True
        except Exception as e:
            logger.error(f"Error recording attempt: {e}")
            return False

    def increment_correct_answers(self, session_id: str, is_correct: bool) -> Optional[int]:
        """
        Read the session's correct_answers and write it back incremented.

        Not atomic: two writers on the same row can lose an update. The value
        is overwritten by complete_practice_session at the end of the run.
        """
        try:
            current = (
                self.client.table("practice_sessions")
                .select("correct_answers")
                .eq("id", str(session_id))
                .single()
                .execute()
            )
            new_value = ((current.data or {}).get("correct_answers") or 0) + (1 if is_correct else 0)
            (
                self.client.table("practice_sessions")
                .update({"correct_answers": new_value})
                .eq("id", str(session_id))
                .execute()
            )
            return new_value
        except Exception as e:
            logger.error(f"Error updating session: {e}")
            return None

    def complete_practice_session(
        self,
        session_id: str,
        correct_answers: int,
        completed_at: Optional[str] = None
    ) -> bool:
        """Finalize a session; correct_answers here is authoritative."""
        try:
            update_data = {
                "completed_at": completed_at or _utcnow_iso(),
                "correct_answers": correct_answers,
            }
            self.client.table("practice_sessions").update(update_data).eq("id", str(session_id)).execute()
            return True
        except Exception as e:
            logger.error(f"Error completing session: {e}")
            return False

    def get_practice_session(self, session_id: str) -> Dict:
        try:
            response = (
                self.client.table("practice_sessions")
                .select("*")
                .eq("id", str(session_id))
                .single()
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching session {session_id}: {e}")
            raise FetchError(f"Could not load session {session_id}") from e
        if not response.data:
            raise FetchError(f"Session {session_id} not found")
        return response.data

    def get_session_attempts(self, session_id: str) -> List[Dict]:
        """Fetch all attempts recorded for a session."""
        try:
            response = (
                self.client.table("question_attempts")
                .select("*")
                .eq("session_id", str(session_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching session attempts: {e}")
            raise FetchError(f"Could not load attempts for session {session_id}") from e
        return response.data or []

