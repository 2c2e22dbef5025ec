"""Supabase clients for the app and CLI scripts, plus bulk helpers. Shared client is cached via Streamlit."""
import logging
import os
from collections import Counter

import streamlit as st
from dotenv import load_dotenv
from supabase import create_client, Client

from src.auth import AuthStateProvider
from src.database import DatabaseClient

load_dotenv()

PAGE_SIZE = 1000


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


@st.cache_resource
def get_supabase() -> Client:
    """Shared client for anonymous catalog reads."""
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_session_client() -> Client:
    """One client per browser session: it carries that visitor's auth tokens."""
    if "supabase_client" not in st.session_state:
        st.session_state["supabase_client"] = _env_client()
    return st.session_state["supabase_client"]


@st.cache_resource
def get_catalog_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())


def get_session_database() -> DatabaseClient:
    if "database" not in st.session_state:
        st.session_state["database"] = DatabaseClient(get_session_client())
    return st.session_state["database"]


def get_auth_provider() -> AuthStateProvider:
    if "auth_provider" not in st.session_state:
        st.session_state["auth_provider"] = AuthStateProvider(get_session_client())
    return st.session_state["auth_provider"]


# --- Bulk question import ---

def upsert_questions_bulk(client: Client, rows: list[dict], chunk_size: int = 200):
    """Bulk upsert into questions. Rows must include 'id' (uuid). Dedupes by id within each chunk."""
    n_before = len(rows)
    by_id = {r["id"]: r for r in rows}
    rows = list(by_id.values())
    log = logging.getLogger(__name__)
    if len(rows) < n_before:
        log.info("Deduped questions by id: %d -> %d", n_before, len(rows))
    n_chunks = (len(rows) + chunk_size - 1) // chunk_size
    for i in range(0, len(rows), chunk_size):
        chunk = rows[i : i + chunk_size]
        chunk_num = i // chunk_size + 1
        log.info("Upserting chunk %d/%d (%d rows)", chunk_num, n_chunks, len(chunk))
        client.table("questions").upsert(chunk, on_conflict="id").execute()


# --- Topic question counts ---

def _fetch_all(client: Client, table: str, *columns: str) -> list[dict]:
    """Page through a table (Supabase caps a single read, often at 1000 rows)."""
    all_rows = []
    offset = 0
    while True:
        r = client.table(table).select(*columns).range(offset, offset + PAGE_SIZE - 1).execute()
        data = r.data or []
        if not data:
            break
        all_rows.extend(data)
        if len(data) < PAGE_SIZE:
            break
        offset += PAGE_SIZE
    return all_rows


def get_all_topics(client: Client) -> list[dict]:
    return _fetch_all(client, "topics", "id", "title", "package_id", "question_count")


def get_true_question_counts(client: Client) -> dict:
    """Returns {topic_id: number of questions referencing it}."""
    rows = _fetch_all(client, "questions", "topic_id")
    return dict(Counter(row.get("topic_id") for row in rows if row.get("topic_id")))


def refresh_topic_question_counts(client: Client, topic_ids: list[str] | None = None) -> dict:
    """
    Rewrite the denormalized topics.question_count from the real question count.

    Returns {topic_id: new_count} for every topic that was updated.
    """
    log = logging.getLogger(__name__)
    true_counts = get_true_question_counts(client)
    updated = {}
    for topic in get_all_topics(client):
        topic_id = topic["id"]
        if topic_ids is not None and topic_id not in topic_ids:
            continue
        count = true_counts.get(topic_id, 0)
        if topic.get("question_count") == count:
            continue
        client.table("topics").update({"question_count": count}).eq("id", topic_id).execute()
        log.info("Topic %s question_count %s -> %d", topic_id, topic.get("question_count"), count)
        updated[topic_id] = count
    return updated
