"""Topic picker state: multi-select, title search, available-question count, desired count."""
import logging
from typing import List, Dict

from engine import DEFAULT_QUESTION_COUNT, MIN_QUESTION_COUNT
from src.routes import practice_path

logger = logging.getLogger(__name__)


class TopicSelection:
    """Selection over one package's topics. Kept in st.session_state across reruns."""

    def __init__(self, topics: List[Dict], desired_count: int = DEFAULT_QUESTION_COUNT):
        self.topics = topics
        self._by_id = {str(t["id"]): t for t in topics}
        self._selected = set()
        self.desired_count = desired_count

    def toggle(self, topic_id) -> bool:
        """Add or remove a topic. Returns whether it is selected afterwards."""
        topic_id = str(topic_id)
        if topic_id not in self._by_id:
            logger.warning(f"Ignoring toggle of unknown topic {topic_id}")
            return False
        if topic_id in self._selected:
            self._selected.discard(topic_id)
            return False
        self._selected.add(topic_id)
        return True

    def is_selected(self, topic_id) -> bool:
        return str(topic_id) in self._selected

    @property
    def selected_ids(self) -> List[str]:
        # listing order, so the same selection always yields the same route
        return [str(t["id"]) for t in self.topics if str(t["id"]) in self._selected]

    def filter(self, query: str) -> List[Dict]:
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.topics)
        return [t for t in self.topics if needle in (t.get("title") or "").lower()]

    @property
    def available_questions(self) -> int:
        return sum(self._by_id[t].get("question_count") or 0 for t in self._selected)

    def set_desired_count(self, raw) -> int:
        """Accept a new count if it parses as an integer >= 1; otherwise keep the last valid one."""
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            return self.desired_count
        if value >= MIN_QUESTION_COUNT:
            self.desired_count = value
        return self.desired_count

    @property
    def can_start(self) -> bool:
        return bool(self._selected)

    def practice_path(self) -> str:
        if not self.can_start:
            raise ValueError("Select at least one topic")
        return practice_path(self.selected_ids, self.desired_count)
