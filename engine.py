"""Practice tunables shared by the views and src/ logic. No UI."""
# Desired question count: default 10, anything below 1 is rejected
# Session clock refreshes once per second

APP_TITLE = "Exam Practice"
DEFAULT_QUESTION_COUNT = 10
MIN_QUESTION_COUNT = 1
TIMER_INTERVAL_SECONDS = 1
