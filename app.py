"""Exam Practice: package catalog, topic picker and timed practice sessions."""
import logging
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_auth_provider, get_catalog_database, get_session_database
from engine import APP_TITLE, TIMER_INTERVAL_SECONDS
from src.auth import AuthGate, UNAUTHENTICATED
from src.database import FetchError
from src.engine import PracticeRuns, PracticeSession, ERROR, LOADING, SUMMARY
from src.routes import (
    CATALOG_PATH, PAGE_AUTH, PAGE_PACKAGE, PAGE_PRACTICE,
    auth_path, package_path, parse_path, path_from_query_params, query_params_for,
)
from src.selection import TopicSelection
from src.summary import format_time

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title=APP_TITLE, layout="wide")
st.sidebar.title(APP_TITLE)

for key, default in (("selections", {}), ("practice_runs", PracticeRuns())):
    if key not in st.session_state:
        st.session_state[key] = default


# ----- Navigation -----

def go(path: str):
    """Point the URL at `path`. Safe inside widget callbacks (the rerun follows)."""
    st.query_params.from_dict(query_params_for(path))


def navigate(path: str):
    go(path)
    st.rerun()


def notify(notification: dict):
    st.session_state["pending_toast"] = notification


def show_pending_toast():
    notification = st.session_state.pop("pending_toast", None)
    if notification:
        icon = "✅" if notification["variant"] == "success" else "❌"
        st.toast(f"**{notification['title']}** {notification['body']}", icon=icon)


def require_auth(location: str):
    """Open (or keep open) the gate for this view; redirect to sign-in when signed out."""
    gate = st.session_state.get("auth_gate")
    if gate is None or gate.location != location:
        if gate is not None:
            gate.close()
        gate = AuthGate(get_auth_provider(), location)
        st.session_state["auth_gate"] = gate
    with st.spinner("Checking your session..."):
        gate.open()
    if gate.state == UNAUTHENTICATED:
        logger.info("Signed-out visitor on %s, redirecting to sign-in", location)
        gate.close()
        st.session_state.pop("auth_gate", None)
        navigate(gate.redirect_path())


def release_auth_gate():
    gate = st.session_state.pop("auth_gate", None)
    if gate is not None:
        gate.close()


def sign_out():
    if get_auth_provider().sign_out():
        go(auth_path())
    else:
        notify({"title": "Error", "body": "Failed to sign out. Please try again.", "variant": "error"})


def error_panel(title: str, message: str, back_label: str, on_back, args=()):
    with st.container(border=True):
        st.error(f"**{title}**")
        st.write(message)
        st.button(back_label, on_click=on_back, args=args, type="primary")


# ----- Catalog -----

def render_catalog():
    email = get_auth_provider().current_email()
    top = st.columns([4, 1])
    with top[1]:
        if email:
            st.caption(f"👤 {email}")
            st.button("Sign out", on_click=sign_out, use_container_width=True)
        else:
            st.button("Sign in", on_click=go, args=(auth_path(),), use_container_width=True)

    st.header("Master your exam")
    st.write("Prepare for your exam with original questions and detailed explanations.")
    st.subheader("Choose your study package")

    try:
        packages = get_catalog_database().get_exam_packages()
    except FetchError:
        st.error("Error loading packages. Please try again.")
        return

    if not packages:
        st.info("No packages available yet.")
        return

    columns = st.columns(3)
    for i, pkg in enumerate(packages):
        with columns[i % 3]:
            with st.container(border=True):
                st.subheader(pkg.get("title", ""))
                st.caption(pkg.get("description", ""))
                st.markdown(f"### R$ {float(pkg.get('price') or 0):.2f}")
                for feature in pkg.get("features") or []:
                    st.write(f"✓ {feature}")
                st.button(
                    "Get started",
                    key=f"start_{pkg['id']}",
                    type="primary",
                    use_container_width=True,
                    on_click=go,
                    args=(package_path(pkg["id"]),),
                )


# ----- Topic selection -----

def _on_count_change(selection: TopicSelection, key: str):
    st.session_state[key] = str(selection.set_desired_count(st.session_state[key]))


def render_package(package_id: str, location: str):
    require_auth(location)
    st.button("← Back to packages", on_click=go, args=(CATALOG_PATH,))

    db = get_session_database()
    try:
        package = db.get_exam_package(package_id)
        topics = db.get_topics_by_package(package_id)
    except FetchError:
        error_panel(
            "Error loading topics",
            "Could not load this package's topics. Please try again later.",
            "Back to packages", go, (CATALOG_PATH,),
        )
        st.stop()

    selections = st.session_state["selections"]
    if package_id not in selections:
        selections[package_id] = TopicSelection(topics)
    selection = selections[package_id]

    st.header(package.get("title", "Choose your topics"))
    st.caption("Select one or more topics and set how many questions you want to practice")

    query = st.text_input("Search topics", key=f"search_{package_id}")
    shown = selection.filter(query)
    if not shown:
        st.info("No topics match your search.")
    for topic in shown:
        topic_id = str(topic["id"])
        st.checkbox(
            f"{topic.get('title', '')} ({topic.get('question_count') or 0} questions)",
            value=selection.is_selected(topic_id),
            key=f"topic_{package_id}_{topic_id}",
            help=topic.get("description") or None,
            on_change=selection.toggle,
            args=(topic_id,),
        )

    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Available questions", selection.available_questions)
    with col2:
        count_key = f"count_{package_id}"
        if count_key not in st.session_state:
            st.session_state[count_key] = str(selection.desired_count)
        st.text_input("Number of questions", key=count_key, on_change=_on_count_change, args=(selection, count_key))

    if st.button("Start practice session", type="primary", disabled=not selection.can_start, use_container_width=True):
        navigate(selection.practice_path())


# ----- Practice -----

def _get_practice(location: str, params: dict) -> PracticeSession:
    return st.session_state["practice_runs"].get(
        location,
        lambda: PracticeSession(
            get_session_database(),
            params["topic_ids"],
            params["count"],
            user_id=get_auth_provider().current_user_id(),
        ),
    )


def _leave_practice(path: str):
    st.session_state["practice_runs"].clear()
    go(path)


def _on_solve(practice: PracticeSession):
    result = practice.solve()
    if result:
        notify(result["notification"])


@st.fragment(run_every=TIMER_INTERVAL_SECONDS)
def render_clock(practice: PracticeSession):
    st.markdown(f"⏱ `{practice.elapsed_clock()}`")


def render_summary(practice: PracticeSession):
    back = practice.back_path()
    st.button("← Back to topics", key="summary_back_top", on_click=_leave_practice, args=(back,))
    summary = practice.summary()
    if not summary:
        st.info("No data available")
        return

    st.header("🏆 Session complete!")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Score", f"{summary['correct_count']}/{summary['total_questions']}")
        st.caption(f"Accuracy: {summary['accuracy']:.1f}%")
    with col2:
        st.metric("Total time", format_time(summary["session_time"]))
    with col3:
        st.metric("Average time per question", format_time(round(summary["average_time_per_question"])))

    st.subheader("Question review")
    for row in summary["questions"]:
        mark = "✅" if row["is_correct"] else "❌"
        st.write(f"{mark} Question {row['number']} · {format_time(row['time_spent'])}")

    st.button("Back to topics", type="primary", on_click=_leave_practice, args=(back,))


def render_question(practice: PracticeSession):
    question = practice.current_question
    crumbs = " › ".join(["Questions"] + practice.breadcrumb())
    top = st.columns([4, 1])
    with top[0]:
        st.button("← Back to topics", on_click=_leave_practice, args=(practice.back_path(),))
        st.caption(crumbs)
    with top[1]:
        render_clock(practice)

    st.subheader(f"Question {practice.question_number} of {practice.total_questions}")
    st.caption(
        f"({practice.resolved_count} solved, {practice.correct_count} correct and {practice.error_count} wrong)"
    )
    st.progress(practice.question_number / practice.total_questions)
    st.markdown(question["text"])

    for option in question["options"]:
        label = f"**{option['id']}** {option['text']}"
        if practice.revealed:
            if option["id"] == question["correct_answer"]:
                st.success(label)
            elif option["id"] == practice.selected_answer:
                st.error(label)
            else:
                st.write(label)
        else:
            st.button(
                label,
                key=f"opt_{practice.current_index}_{option['id']}",
                type="primary" if option["id"] == practice.selected_answer else "secondary",
                use_container_width=True,
                on_click=practice.select,
                args=(option["id"],),
            )

    col1, col2, col3 = st.columns([1, 1, 1])
    with col1:
        st.button("← Previous", disabled=practice.current_index == 0, on_click=practice.previous)
    with col2:
        if practice.selected_answer and not practice.revealed:
            st.button("Solve", type="primary", on_click=_on_solve, args=(practice,))
    with col3:
        finishing = practice.is_last_question and practice.revealed
        st.button(
            "Finish" if finishing else "Next →",
            disabled=practice.is_last_question and not practice.revealed,
            on_click=practice.next,
        )

    if practice.revealed:
        if practice.selected_answer == question["correct_answer"]:
            st.success("Correct answer!")
        else:
            st.error(f"Incorrect answer. The correct option is {question['correct_answer']}.")
        with st.expander("View explanation"):
            # rationale is stored as HTML
            st.markdown(question["rationale"] or "No explanation available.", unsafe_allow_html=True)


def render_practice(params: dict, location: str):
    require_auth(location)
    practice = _get_practice(location, params)

    if practice.state == LOADING:
        with st.spinner("Loading questions..."):
            practice.load()

    if practice.state == ERROR:
        error_panel(
            "Error loading questions",
            "Could not load the questions. Please try again later.",
            "Back to topics", _leave_practice, (practice.back_path(),),
        )
    elif practice.state == SUMMARY:
        render_summary(practice)
    else:
        render_question(practice)


# ----- Sign in -----

def render_auth(next_path: str):
    provider = get_auth_provider()
    if provider.current_session():
        navigate(next_path)

    st.header("Sign in")
    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        col1, col2 = st.columns(2)
        with col1:
            signing_in = st.form_submit_button("Sign in", type="primary", use_container_width=True)
        with col2:
            signing_up = st.form_submit_button("Create account", use_container_width=True)

    if signing_in:
        if provider.sign_in(email, password):
            navigate(next_path)
        st.error("Invalid email or password.")
    elif signing_up:
        if provider.sign_up(email, password):
            st.success("Account created. Check your email to confirm it, then sign in.")
        else:
            st.error("Could not create the account. Please try again.")


# ----- Router -----

location = path_from_query_params(st.query_params)
page, params = parse_path(location)
show_pending_toast()

if page != PAGE_PRACTICE:
    st.session_state["practice_runs"].clear()

if page == PAGE_PACKAGE:
    render_package(params["package_id"], location)
elif page == PAGE_PRACTICE:
    render_practice(params, location)
elif page == PAGE_AUTH:
    release_auth_gate()
    render_auth(params["next"])
else:
    release_auth_gate()
    render_catalog()
