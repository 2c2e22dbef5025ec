"""Practice session state machine: sampling, answering, navigation, persistence, completion."""
import random

from src.engine import (
    PracticeRuns, PracticeSession, sample_questions, ERROR, IN_PROGRESS, LOADING, SUMMARY,
)


def _start(database, clock, topic_ids=("T1", "T2"), count=4, **kwargs):
    practice = PracticeSession(database, list(topic_ids), count, user_id="user-1", clock=clock, **kwargs)
    practice.load()
    return practice


def _answer(practice, correct=True):
    question = practice.current_question
    if correct:
        choice = question["correct_answer"]
    else:
        choice = next(o["id"] for o in question["options"] if o["id"] != question["correct_answer"])
    practice.select(choice)
    return practice.solve()


def test_sample_has_min_of_requested_and_available():
    pool = [{"id": f"q{i}"} for i in range(5)]
    rng = random.Random(7)
    for requested in range(0, 9):
        sample = sample_questions(pool, requested, rng)
        ids = [q["id"] for q in sample]
        assert len(sample) == min(requested, len(pool))
        assert len(set(ids)) == len(ids)
        assert all(q in pool for q in sample)


def test_sample_does_not_mutate_pool():
    pool = [{"id": f"q{i}"} for i in range(10)]
    before = list(pool)
    sample_questions(pool, 5, random.Random(1))
    assert pool == before


def test_seeded_sampling_is_reproducible(database, clock):
    first = _start(database, clock, seed=42)
    second = _start(database, clock, seed=42)
    assert [q["id"] for q in first.questions] == [q["id"] for q in second.questions]


def test_four_of_five_creates_one_session_row(database, fake_supabase, clock):
    practice = _start(database, clock)

    assert practice.state == IN_PROGRESS
    ids = [q["id"] for q in practice.questions]
    assert len(ids) == 4
    assert len(set(ids)) == 4
    assert set(ids) <= {"q1", "q2", "q3", "q4", "q5"}

    sessions = fake_supabase.rows("practice_sessions")
    assert len(sessions) == 1
    assert sessions[0]["total_questions"] == 4
    assert sessions[0]["topic_id"] == "T1"
    assert sessions[0]["user_id"] == "user-1"
    assert practice.session_id == sessions[0]["id"]


def test_fewer_available_than_requested_is_not_an_error(database, fake_supabase, clock):
    practice = _start(database, clock, topic_ids=["T2"], count=10)
    assert practice.state == IN_PROGRESS
    assert practice.total_questions == 2
    assert fake_supabase.rows("practice_sessions")[0]["total_questions"] == 2


def test_load_runs_once(database, fake_supabase, clock):
    practice = _start(database, clock)
    sampled = list(practice.questions)
    practice.load()
    assert practice.questions == sampled
    assert len(fake_supabase.rows("practice_sessions")) == 1


def test_fetch_failure_goes_to_error_without_session(database, fake_supabase, clock):
    fake_supabase.fail("questions", "select")
    practice = _start(database, clock)
    assert practice.state == ERROR
    assert practice.error_message
    assert fake_supabase.rows("practice_sessions") == []
    assert ("practice_sessions", "insert") not in fake_supabase.calls


def test_fetch_failure_still_returns_to_package(database, fake_supabase, clock):
    fake_supabase.fail("questions", "select")
    practice = _start(database, clock)
    assert practice.state == ERROR
    assert practice.back_path() == "/package/P"


def test_empty_pool_returns_to_its_package(database, clock):
    practice = _start(database, clock, topic_ids=["T3"])
    assert practice.state == ERROR
    assert practice.back_path() == "/package/Q"


def test_no_topics_is_an_error(database, fake_supabase, clock):
    practice = _start(database, clock, topic_ids=[])
    assert practice.state == ERROR
    assert fake_supabase.calls == []


def test_no_questions_is_an_error(database, fake_supabase, clock):
    practice = _start(database, clock, topic_ids=["T3"])
    assert practice.state == ERROR
    assert fake_supabase.rows("practice_sessions") == []


def test_error_state_ignores_actions(database, fake_supabase, clock):
    fake_supabase.fail("questions", "select")
    practice = _start(database, clock)
    assert practice.select("A") is False
    assert practice.solve() is None
    assert practice.next() == ERROR
    assert practice.previous() == ERROR


def test_initial_state_is_loading(database, clock):
    practice = PracticeSession(database, ["T1"], 3, clock=clock)
    assert practice.state == LOADING
    assert practice.current_question is None


def test_solve_requires_selection(database, clock):
    practice = _start(database, clock)
    assert practice.solve() is None
    assert practice.attempts == []


def test_select_unknown_option_is_ignored(database, clock):
    practice = _start(database, clock)
    assert practice.select("Z") is False
    assert practice.selected_answer is None


def test_select_after_reveal_is_ignored(database, clock):
    practice = _start(database, clock)
    result = _answer(practice, correct=False)
    assert practice.select(result["correct_answer"]) is False
    assert practice.selected_answer == result["selected_answer"]


def test_second_solve_is_ignored(database, fake_supabase, clock):
    practice = _start(database, clock)
    assert _answer(practice) is not None
    assert practice.solve() is None
    assert len(fake_supabase.rows("question_attempts")) == 1


def test_solve_records_and_persists_attempt(database, fake_supabase, clock):
    practice = _start(database, clock)
    clock.advance(12.6)
    result = _answer(practice, correct=True)

    assert result["is_correct"] is True
    assert result["time_spent"] == 13
    assert result["notification"]["variant"] == "success"
    assert practice.revealed is True
    assert practice.correct_count == 1

    rows = fake_supabase.rows("question_attempts")
    assert len(rows) == 1
    assert rows[0]["session_id"] == practice.session_id
    assert rows[0]["question_id"] == result["question_id"]
    assert rows[0]["is_correct"] is True
    assert rows[0]["time_spent"] == 13
    assert fake_supabase.rows("practice_sessions")[0]["correct_answers"] == 1


def test_wrong_answer_notification_names_correct_option(database, clock):
    practice = _start(database, clock)
    result = _answer(practice, correct=False)
    assert result["is_correct"] is False
    assert result["notification"]["variant"] == "error"
    assert result["correct_answer"] in result["notification"]["body"]
    assert practice.error_count == 1


def test_question_timer_resets_on_navigation(database, clock):
    practice = _start(database, clock)
    clock.advance(30)
    practice.next()
    clock.advance(5)
    result = _answer(practice)
    assert result["time_spent"] == 5


def test_previous_then_next_restores_state(database, clock):
    practice = _start(database, clock)
    _answer(practice, correct=False)
    practice.next()
    practice.select(practice.current_question["options"][0]["id"])
    practice.solve()
    practice.next()

    for index in range(1, practice.total_questions):
        practice._go_to(index)
        before = (practice.current_question["id"], practice.selected_answer, practice.revealed)
        practice.previous()
        practice.next()
        after = (practice.current_question["id"], practice.selected_answer, practice.revealed)
        assert after == before


def test_previous_restores_answered_question(database, clock):
    practice = _start(database, clock)
    first = _answer(practice, correct=False)
    practice.next()
    assert practice.revealed is False
    assert practice.selected_answer is None
    practice.previous()
    assert practice.current_index == 0
    assert practice.revealed is True
    assert practice.selected_answer == first["selected_answer"]


def test_previous_is_noop_at_start(database, clock):
    practice = _start(database, clock)
    practice.previous()
    assert practice.current_index == 0


def test_next_on_unsolved_last_question_does_nothing(database, clock):
    practice = _start(database, clock)
    for _ in range(practice.total_questions - 1):
        practice.next()
    assert practice.is_last_question
    assert practice.next() == IN_PROGRESS
    assert practice.current_index == practice.total_questions - 1


def test_all_correct_gives_full_accuracy(database, fake_supabase, clock):
    practice = _start(database, clock)
    for _ in range(practice.total_questions):
        clock.advance(10)
        _answer(practice, correct=True)
        practice.next()

    assert practice.state == SUMMARY
    summary = practice.summary()
    assert summary["accuracy"] == 100.0
    assert summary["correct_count"] == summary["total_questions"] == 4
    row = fake_supabase.rows("practice_sessions")[0]
    assert row["completed_at"] is not None
    assert row["correct_answers"] == 4


def test_completed_counts_agree(database, fake_supabase, clock):
    practice = _start(database, clock, count=5)
    pattern = [True, False, True, False, False]
    for correct in pattern:
        _answer(practice, correct=correct)
        practice.next()

    assert practice.state == SUMMARY
    attempts = fake_supabase.rows("question_attempts")
    row = fake_supabase.rows("practice_sessions")[0]
    assert sum(1 for a in attempts if a["is_correct"]) == practice.summary()["correct_count"] == row["correct_answers"] == 2


def test_session_creation_failure_degrades_to_local(database, fake_supabase, clock):
    fake_supabase.fail("practice_sessions", "insert")
    practice = _start(database, clock, count=2)
    assert practice.state == IN_PROGRESS
    assert practice.session_id is None

    for _ in range(2):
        _answer(practice)
        practice.next()

    assert practice.state == SUMMARY
    assert fake_supabase.rows("question_attempts") == []
    assert practice.summary()["correct_count"] == 2


def test_attempt_write_failure_keeps_flow(database, fake_supabase, clock):
    fake_supabase.fail("question_attempts", "insert")
    practice = _start(database, clock, count=1)
    result = _answer(practice)
    assert result is not None
    assert practice.next() == SUMMARY
    assert fake_supabase.rows("practice_sessions")[0]["correct_answers"] == 1


def test_back_path_uses_first_topic_package(database, clock):
    practice = _start(database, clock)
    assert practice.package_id == "P"
    assert practice.back_path() == "/package/P"


def test_back_path_falls_back_when_package_unknown(database, fake_supabase, clock):
    fake_supabase.tables["topics"] = []
    practice = _start(database, clock)
    assert practice.package_id is None
    assert practice.back_path() == "/topics"


def test_breadcrumb_and_clock(database, clock):
    practice = _start(database, clock)
    assert practice.breadcrumb()[0] == "Bar Exam"
    assert practice.breadcrumb()[1] in {"Contract Law", "Civil Procedure"}
    clock.advance(3725)
    assert practice.elapsed_clock() == "01:02:05"


def test_summary_session_time_is_frozen_at_completion(database, clock):
    practice = _start(database, clock, count=1)
    clock.advance(40)
    _answer(practice)
    practice.next()
    clock.advance(500)
    assert practice.summary()["session_time"] == 40
    assert practice.elapsed_seconds() == 40


def test_runs_resume_at_same_location(database, clock):
    runs = PracticeRuns()
    first = runs.get("/practice/T1?count=4", lambda: PracticeSession(database, ["T1"], 4, clock=clock))
    again = runs.get("/practice/T1?count=4", lambda: PracticeSession(database, ["T1"], 4, clock=clock))
    assert again is first


def test_cleared_runs_start_fresh(database, clock):
    runs = PracticeRuns()
    location = "/practice/T1?count=4"
    first = runs.get(location, lambda: PracticeSession(database, ["T1"], 4, clock=clock))
    runs.clear()
    assert runs.get(location, lambda: PracticeSession(database, ["T1"], 4, clock=clock)) is not first


def test_runs_keep_only_the_current_location(database, clock):
    runs = PracticeRuns()
    runs.get("/practice/T1?count=4", lambda: PracticeSession(database, ["T1"], 4, clock=clock))
    second = runs.get("/practice/T2?count=2", lambda: PracticeSession(database, ["T2"], 2, clock=clock))
    assert runs.location == "/practice/T2?count=2"
    assert runs.run is second
