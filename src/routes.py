"""
Navigation contract: path strings for each view and their Streamlit query-param form.

Paths:
    /                               package catalog
    /topics                         generic fallback (rendered as the catalog)
    /package/<package_id>           topic selection
    /practice/<id1,id2,...>?count=N practice session
    /auth?next=<path>               sign-in, returns to `next` afterwards
"""
import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

from engine import DEFAULT_QUESTION_COUNT, MIN_QUESTION_COUNT

logger = logging.getLogger(__name__)

CATALOG_PATH = "/"
TOPICS_FALLBACK_PATH = "/topics"
SIGN_IN_PATH = "/auth"

PAGE_CATALOG = "catalog"
PAGE_PACKAGE = "package"
PAGE_PRACTICE = "practice"
PAGE_AUTH = "auth"


def parse_topic_ids(raw: Optional[str]) -> List[str]:
    """Split a comma-joined id list. Blanks dropped, duplicates removed, order kept."""
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part and part not in ids:
            ids.append(part)
    return ids


def parse_count(raw, default: int = DEFAULT_QUESTION_COUNT) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value >= MIN_QUESTION_COUNT else default


def package_path(package_id: str) -> str:
    return f"/package/{quote(str(package_id), safe='')}"


def practice_path(topic_ids: List[str], count: int) -> str:
    ids = parse_topic_ids(",".join(str(t) for t in topic_ids))
    if not ids:
        raise ValueError("practice_path needs at least one topic id")
    return f"/practice/{','.join(quote(i, safe='') for i in ids)}?count={int(count)}"


def auth_path(next_path: Optional[str] = None) -> str:
    if not next_path:
        return SIGN_IN_PATH
    return f"{SIGN_IN_PATH}?{urlencode({'next': next_path})}"


def parse_path(path: str) -> Tuple[str, Dict]:
    """
    Resolve a path to (page, params).

    Unknown paths fall back to the catalog.
    """
    parts = urlsplit(path or CATALOG_PATH)
    query = {k: v[-1] for k, v in parse_qs(parts.query).items()}
    segments = [unquote(s) for s in parts.path.split("/") if s]

    if not segments or segments == ["topics"]:
        return PAGE_CATALOG, {}
    if segments[0] == "package" and len(segments) == 2:
        return PAGE_PACKAGE, {"package_id": segments[1]}
    if segments[0] == "practice" and len(segments) == 2:
        return PAGE_PRACTICE, {
            "topic_ids": parse_topic_ids(segments[1]),
            "count": parse_count(query.get("count")),
        }
    if segments == ["auth"]:
        return PAGE_AUTH, {"next": query.get("next") or CATALOG_PATH}

    logger.warning(f"Unknown path {path!r}, falling back to catalog")
    return PAGE_CATALOG, {}


def query_params_for(path: str) -> Dict[str, str]:
    """Flatten a path into the query params Streamlit keeps in the URL."""
    page, params = parse_path(path)
    if page == PAGE_PACKAGE:
        return {"page": page, "package_id": params["package_id"]}
    if page == PAGE_PRACTICE:
        return {"page": page, "topics": ",".join(params["topic_ids"]), "count": str(params["count"])}
    if page == PAGE_AUTH:
        return {"page": page, "next": params["next"]}
    return {}


def path_from_query_params(params) -> str:
    """Inverse of query_params_for; `params` is st.query_params or any mapping."""
    page = params.get("page") or PAGE_CATALOG
    if page == PAGE_PACKAGE and params.get("package_id"):
        return package_path(params["package_id"])
    if page == PAGE_PRACTICE:
        topic_ids = parse_topic_ids(params.get("topics"))
        if topic_ids:
            return practice_path(topic_ids, parse_count(params.get("count")))
    if page == PAGE_AUTH:
        return auth_path(params.get("next"))
    return CATALOG_PATH
