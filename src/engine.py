"""
Practice Engine: question sampling and the practice-session state machine.
States: loading -> in_progress -> summary, with error reachable from loading.
"""
import logging
import random
from datetime import datetime, timezone
from typing import Callable, List, Dict, Optional

from engine import DEFAULT_QUESTION_COUNT
from src.database import FetchError
from src.routes import TOPICS_FALLBACK_PATH, package_path
from src.summary import format_clock, summarize

logger = logging.getLogger(__name__)

LOADING = "loading"
IN_PROGRESS = "in_progress"
SUMMARY = "summary"
ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sample_questions(pool: List[Dict], count: int, rng: Optional[random.Random] = None) -> List[Dict]:
    """
    Uniform random permutation of the pool, cut to min(count, len(pool)).

    random.Random is a Mersenne Twister, not a cryptographic source; fine for
    practice quizzes, not for anything graded.
    """
    rng = rng or random.Random()
    shuffled = list(pool)
    rng.shuffle(shuffled)
    return shuffled[:max(0, min(count, len(shuffled)))]


class PracticeSession:
    """Manages one practice run: sampled questions, answers, persistence and summary."""

    def __init__(
        self,
        store,
        topic_ids: List[str],
        desired_count: int = DEFAULT_QUESTION_COUNT,
        user_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        seed: Optional[int] = None,
    ):
        """
        Args:
            store: DatabaseClient (or anything with the same methods)
            topic_ids: topics merged into this run; the first one represents the run
            desired_count: how many questions to sample
            user_id: owner of the practice_sessions row
            rng: random source for sampling; `seed` builds one when rng is not given
            clock: returns the current aware datetime
        """
        self.store = store
        self.topic_ids = list(topic_ids)
        self.desired_count = desired_count
        self.user_id = user_id
        self.rng = rng or random.Random(seed)
        self.clock = clock or _utcnow

        self.state = LOADING
        self.error_message: Optional[str] = None

        self.questions: List[Dict] = []
        self.session_id: Optional[str] = None
        self.package_id: Optional[str] = None

        self.current_index = 0
        self.selected_answer: Optional[str] = None
        self.revealed = False
        self.answered: Dict[str, Dict] = {}  # {question_id: {selected, is_correct}}
        self.attempts: List[Dict] = []
        self.correct_count = 0

        self.session_started_at: Optional[datetime] = None
        self.question_started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    # ============= Loading =============

    def load(self) -> str:
        """Fetch, sample and open the session row. Runs once; later calls return the state."""
        if self.state != LOADING:
            return self.state

        if not self.topic_ids:
            return self._fail("No topics were selected")

        self.package_id = self.store.get_topic_package_id(self.topic_ids[0])

        try:
            pool = self.store.get_questions_for_topics(self.topic_ids)
        except FetchError as e:
            return self._fail(str(e))

        if not pool:
            return self._fail("No questions available for the selected topics")

        self.questions = sample_questions(pool, self.desired_count, self.rng)
        if len(self.questions) < self.desired_count:
            logger.info(f"Requested {self.desired_count} questions, only {len(self.questions)} available")

        self.session_id = self.store.create_practice_session(
            self.topic_ids[0], len(self.questions), self.user_id
        )
        if self.session_id is None:
            logger.warning("Practice session row not created; attempts will be kept locally only")

        now = self.clock()
        self.session_started_at = now
        self.question_started_at = now
        self.state = IN_PROGRESS
        logger.info(f"Practice session {self.session_id}: {len(self.questions)} questions from {len(self.topic_ids)} topic(s)")
        return self.state

    def _fail(self, message: str) -> str:
        logger.error(f"Practice session could not start: {message}")
        self.error_message = message
        self.state = ERROR
        return self.state

    # ============= Current question =============

    @property
    def current_question(self) -> Optional[Dict]:
        if self.state != IN_PROGRESS or not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def question_number(self) -> int:
        return self.current_index + 1

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    @property
    def resolved_count(self) -> int:
        return len(self.answered)

    @property
    def error_count(self) -> int:
        return self.resolved_count - sum(1 for a in self.answered.values() if a["is_correct"])

    # ============= Answering =============

    def select(self, option_id: str) -> bool:
        """Mark an option as the pending answer. Ignored once the question is revealed."""
        question = self.current_question
        if question is None or self.revealed:
            return False
        option_id = str(option_id)
        if option_id not in {o["id"] for o in question["options"]}:
            logger.warning(f"Option {option_id!r} is not part of question {question['id']}")
            return False
        self.selected_answer = option_id
        return True

    def solve(self) -> Optional[Dict]:
        """
        Check the pending answer, record and persist the attempt, reveal.

        Returns:
            {question_id, selected_answer, correct_answer, is_correct, time_spent,
             rationale, notification} or None when there is nothing to solve
        """
        question = self.current_question
        if question is None or self.revealed or self.selected_answer is None:
            return None

        now = self.clock()
        time_spent = round((now - self.question_started_at).total_seconds())
        is_correct = self.selected_answer == question["correct_answer"]

        attempt = {
            "question_id": question["id"],
            "selected_answer": self.selected_answer,
            "is_correct": is_correct,
            "time_spent": time_spent,
        }
        self.attempts.append(attempt)
        self.answered[question["id"]] = {"selected": self.selected_answer, "is_correct": is_correct}
        if is_correct:
            self.correct_count += 1

        if self.session_id is not None:
            self.store.record_question_attempt(
                self.session_id, question["id"], self.selected_answer, is_correct, time_spent
            )
            if is_correct:
                self.store.increment_correct_answers(self.session_id, is_correct)

        self.revealed = True
        self.question_started_at = now
        logger.debug(f"Answer recorded: Q={question['id']}, Correct={is_correct}, Time={time_spent}s")

        return {
            **attempt,
            "correct_answer": question["correct_answer"],
            "rationale": question["rationale"],
            "notification": self._notification(question, is_correct),
        }

    @staticmethod
    def _notification(question: Dict, is_correct: bool) -> Dict:
        if is_correct:
            return {"title": "Correct answer!", "body": "Well done, you got it right.", "variant": "success"}
        return {
            "title": "Incorrect answer",
            "body": f"The correct option was {question['correct_answer']}.",
            "variant": "error",
        }

    # ============= Navigation =============

    def next(self) -> str:
        """Advance one question; on the last, solved question this completes the session."""
        if self.state != IN_PROGRESS:
            return self.state
        if not self.is_last_question:
            self._go_to(self.current_index + 1)
        elif self.revealed:
            self.complete()
        return self.state

    def previous(self) -> str:
        if self.state == IN_PROGRESS and self.current_index > 0:
            self._go_to(self.current_index - 1)
        return self.state

    def _go_to(self, index: int) -> None:
        self.current_index = index
        prior = self.answered.get(self.questions[index]["id"])
        if prior:
            self.selected_answer = prior["selected"]
            self.revealed = True
        else:
            self.selected_answer = None
            self.revealed = False
        self.question_started_at = self.clock()

    # ============= Completion =============

    def complete(self) -> str:
        """Close the session row with the local correct count and show the summary."""
        if self.state != IN_PROGRESS:
            return self.state
        self.completed_at = self.clock()
        if self.session_id is not None:
            self.store.complete_practice_session(
                self.session_id, self.correct_count, self.completed_at.isoformat()
            )
        self.state = SUMMARY
        logger.info(f"Practice session {self.session_id} completed: {self.correct_count}/{len(self.attempts)} correct")
        return self.state

    def summary(self) -> Optional[Dict]:
        if self.session_started_at is None:
            return None
        return summarize(self.attempts, self.session_started_at, self.completed_at or self.clock())

    # ============= Display helpers =============

    def elapsed_seconds(self) -> int:
        if self.session_started_at is None:
            return 0
        end = self.completed_at or self.clock()
        return int((end - self.session_started_at).total_seconds())

    def elapsed_clock(self) -> str:
        return format_clock(self.elapsed_seconds())

    def back_path(self) -> str:
        if self.package_id:
            return package_path(self.package_id)
        return TOPICS_FALLBACK_PATH

    def breadcrumb(self) -> List[str]:
        """Package title and topic title of the current question, when known."""
        question = self.current_question
        topic = (question or {}).get("topic") or {}
        package = topic.get("exam_packages") or {}
        return [t for t in (package.get("title"), topic.get("title")) if t]


class PracticeRuns:
    """Holds the practice run of one browser session, keyed by its location. Only one run is kept."""

    def __init__(self):
        self.location: Optional[str] = None
        self.run: Optional[PracticeSession] = None

    def get(self, location: str, factory: Callable[[], PracticeSession]) -> PracticeSession:
        """Return the run for `location`, starting a fresh one when the location changed."""
        if self.run is None or self.location != location:
            self.location = location
            self.run = factory()
        return self.run

    def clear(self):
        self.location = None
        self.run = None
