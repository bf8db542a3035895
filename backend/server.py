import os
import sys
import threading

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, jsonify, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from catalog_cache import CatalogCache
from catalog_source import FileCatalogSource
from data_loader import courses_to_df
from normalizer import normalize_input
from plan_validator import build_credit_summary, validate_plan
from recommender import get_recommendations
from requirements import DEFAULT_CHECK_INTERVAL_HOURS, MAX_RECOMMENDATIONS, normalize_categories
from semesters import current_semester_index, last_semesters, parse_semester, semester_index

load_dotenv()

app = Flask(__name__)

VERSION = "1.0.0"

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_DEFAULT_CACHE_DIR = os.path.join(PROJECT_ROOT, ".cache")


def _resolve_path(env_name: str, default: str) -> str:
    raw = os.environ.get(env_name)
    if not raw:
        return default
    if not os.path.isabs(raw):
        return os.path.join(PROJECT_ROOT, raw)
    return raw


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


DATA_PATH = _resolve_path("DATA_PATH", _DEFAULT_DATA_PATH)
CATALOG_CACHE_DIR = _resolve_path("CATALOG_CACHE_DIR", _DEFAULT_CACHE_DIR)
CHECK_INTERVAL_HOURS = _env_float("CATALOG_CHECK_INTERVAL_HOURS", DEFAULT_CHECK_INTERVAL_HOURS, minimum=0.0)
PORT = _env_int("PORT", 5000)

# Serializes refreshes inside this process; the cache itself is race-safe.
_refresh_lock = threading.Lock()

# ── Startup data load ──────────────────────────────────────────────────────────
if not os.path.exists(DATA_PATH) and DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
    print(
        f"[WARN] DATA_PATH not found ({DATA_PATH}); "
        f"falling back to default catalog ({_DEFAULT_DATA_PATH}).",
        file=sys.stderr,
    )
    DATA_PATH = _DEFAULT_DATA_PATH

_source = FileCatalogSource(DATA_PATH)
_cache = CatalogCache(CATALOG_CACHE_DIR, check_interval_hours=CHECK_INTERVAL_HOURS)

try:
    _categories = _source.fetch_categories()
except Exception as exc:
    print(f"[WARN] Failed to load categories from {DATA_PATH}; using defaults: {exc}", file=sys.stderr)
    _categories = normalize_categories(None)

_startup_courses = _cache.get_catalog(_source)
if _startup_courses:
    print(f"[OK] Loaded {len(_startup_courses)} courses (cache: {_cache.courses_path})")
else:
    print(f"[WARN] No catalog data available yet from {DATA_PATH}", file=sys.stderr)


def _get_catalog(force_refresh: bool = False) -> list[dict]:
    with _refresh_lock:
        return _cache.get_catalog(_source, force_refresh=force_refresh)


def _truthy(raw) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "y"}


def _error(error_code: str, message: str, status: int = 400):
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": error_code,
            "message": message,
        },
    }), status


# -- Input validation ------------------------------------------------------
def _validate_json_object(body):
    if body is None:
        return "INVALID_INPUT", "Request body must be valid JSON."
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be a JSON object."
    return None, None


def _validate_plan_field(plan):
    if plan is None:
        return None, None
    if not isinstance(plan, (list, dict)):
        return "INVALID_INPUT", "'plan' must be a list of courses, a list of semesters, or an object keyed by category."
    return None, None


def _validate_recommend_body(body):
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    error_code, message = _validate_json_object(body)
    if error_code:
        return error_code, message
    raw_semester = body.get("semester")
    if raw_semester in (None, ""):
        return "INVALID_INPUT", "'semester' is required (an index or a label like 'HS24')."
    if parse_semester(raw_semester) is None:
        return "INVALID_INPUT", f"'semester' value '{raw_semester}' is not a valid semester (e.g. 'HS24' or 11)."
    raw_category = body.get("category_id")
    if raw_category not in (None, ""):
        try:
            int(raw_category)
        except (TypeError, ValueError):
            return "INVALID_INPUT", "'category_id' must be an integer."
    max_recs_raw = body.get("max_recommendations", MAX_RECOMMENDATIONS)
    try:
        max_recs = int(max_recs_raw)
        if not (1 <= max_recs <= MAX_RECOMMENDATIONS):
            raise ValueError
    except (TypeError, ValueError):
        return "INVALID_INPUT", f"max_recommendations must be an integer between 1 and {MAX_RECOMMENDATIONS}."
    return _validate_plan_field(body.get("plan"))


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": VERSION,
        "catalog_cache_size": _cache.file_size_label(),
    })


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    print(f"[WARN] Unhandled error: {e}", file=sys.stderr)
    return _error("SERVER_ERROR", "An unexpected server error occurred.", 500)


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/courses", methods=["GET"])
def get_courses():
    courses = _get_catalog(force_refresh=_truthy(request.args.get("force_refresh")))
    semester_raw = request.args.get("semester")
    if semester_raw:
        semester = parse_semester(semester_raw)
        if semester is None:
            return _error("INVALID_INPUT", f"'semester' value '{semester_raw}' is not a valid semester.")
        courses = [c for c in courses if not c["semesters"] or semester in c["semesters"]]
    return jsonify({"courses": courses, "count": len(courses)})


@app.route("/courses/resolve", methods=["POST"])
def resolve_courses():
    body = request.get_json(silent=True)
    error_code, message = _validate_json_object(body)
    if error_code:
        return _error(error_code, message)
    groups = body.get("course_ids")
    if not isinstance(groups, list) or not all(isinstance(g, list) for g in groups):
        return _error("INVALID_INPUT", "'course_ids' must be a list of lists of course ids.")
    with _refresh_lock:
        resolved = _cache.resolve_groups(_source, [[str(cid) for cid in g] for g in groups])
    return jsonify({"courses": resolved})


@app.route("/courses/normalize", methods=["POST"])
def normalize_courses_endpoint():
    body = request.get_json(silent=True)
    if body is not None and not isinstance(body, dict):
        return _error("INVALID_INPUT", "Request body must be a JSON object.")
    raw = (body or {}).get("course_ids", "")
    if isinstance(raw, list):
        raw = ",".join(str(r) for r in raw)
    catalog_ids = {c["course_id"] for c in _get_catalog()}
    return jsonify(normalize_input(str(raw), catalog_ids))


@app.route("/semesters", methods=["GET"])
def get_semesters():
    labels = last_semesters()
    return jsonify({
        "current_index": current_semester_index(),
        "semesters": [{"label": label, "index": semester_index(label)} for label in labels],
    })


@app.route("/recommend", methods=["POST"])
def recommend():
    body = request.get_json(silent=True)
    error_code, message = _validate_recommend_body(body)
    if error_code:
        return _error(error_code, message)

    semester = parse_semester(body["semester"])
    raw_category = body.get("category_id")
    category_id = int(raw_category) if raw_category not in (None, "") else None

    courses_df = courses_to_df(_get_catalog())
    recommendations = get_recommendations(
        courses_df,
        body.get("plan") or [],
        semester,
        category_id=category_id,
        max_recommendations=int(body.get("max_recommendations", MAX_RECOMMENDATIONS)),
        with_scores=True,
    )
    return jsonify({
        "mode": "recommendations",
        "semester": semester,
        "category_id": category_id,
        "recommendations": recommendations,
    })


@app.route("/validate-plan", methods=["POST"])
def validate_plan_endpoint():
    body = request.get_json(silent=True)
    error_code, message = _validate_json_object(body)
    if error_code:
        return _error(error_code, message)
    plan = body.get("plan")
    if plan is None:
        return _error("INVALID_INPUT", "'plan' is required.")
    error_code, message = _validate_plan_field(plan)
    if error_code:
        return _error(error_code, message)

    result = validate_plan(plan, _categories)
    return jsonify({
        "mode": "validation",
        **result,
        "summary": build_credit_summary(plan, _categories),
    })


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=PORT, debug=False)
