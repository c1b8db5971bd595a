# app.py
# This is the main flask application file
# It contains the account routes and the puzzle API of the game

from flask import Flask, request, jsonify, url_for, session, g

import os
import logging
import uuid
import bcrypt
import pytz

from datetime import datetime, timedelta
from itsdangerous import (
    URLSafeTimedSerializer, SignatureExpired, BadSignature
)

from flask_mail import Mail, Message
from apscheduler.schedulers.background import BackgroundScheduler

from dotenv import load_dotenv

from db_utils import (
    PostgresConnection, PuzzleStore, LedgerStore, UserStore, init_schema
)
from game_logic import (
    SAMPLE_PUZZLE, InvalidGrid, check_puzzle, grid_to_list, reveal_frames,
    validate_solution
)
from puzzle_selection import (
    Exhausted, GuestLedgers, NoPuzzlesConfigured, StoreUnavailable,
    ledger_for, record_played, select_unplayed_puzzle
)
from settings import (
    DEFAULT_LANG, DIFFICULTIES, DIFFICULTY_KEYS, GUEST_IDLE_MINUTES,
    GUEST_PURGE_INTERVAL_MINUTES, INACTIVITY_MINUTES, LANGUAGES,
    PASSWORD_MIN_LENGTH, RESET_TOKEN_MAX_AGE, SESSION_LIFETIME_DAYS
)
from translations import t

# -----------------------------
# Env / basic setup
# -----------------------------
load_dotenv()
logging.basicConfig(level=logging.INFO)

UTC_TZ = pytz.utc

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-only-secret")
app.permanent_session_lifetime = timedelta(days=SESSION_LIFETIME_DAYS)
s = URLSafeTimedSerializer(app.secret_key)

# -------------------------------------------------------------------
# Settings Email - Flask-Mail
# -------------------------------------------------------------------
app.config["MAIL_SERVER"] = os.environ.get("MAIL_SERVER", "smtp.gmail.com")
app.config["MAIL_PORT"] = int(os.environ.get("MAIL_PORT", "465"))
app.config["MAIL_USE_SSL"] = True
app.config["MAIL_USE_TLS"] = False

app.config["MAIL_USERNAME"] = os.environ.get("MAIL_USERNAME")
app.config["MAIL_PASSWORD"] = os.environ.get("MAIL_PASSWORD")

app.config["MAIL_DEFAULT_SENDER"] = (
    "Pixel Art",
    app.config["MAIL_USERNAME"] or "noreply@pixelart.local"
)

mail = Mail(app)

if not app.config["MAIL_USERNAME"] or not app.config["MAIL_PASSWORD"]:
    app.logger.warning("⚠️ MAIL_USERNAME/MAIL_PASSWORD missing from env, reset emails will fail")

# -------------------------------------------------------------------
# Settings Database (Postgres via DATABASE_URL)
# -------------------------------------------------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()

# Hosted providers sometimes hand out postgres://, psycopg2 wants postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

db = PostgresConnection(DATABASE_URL)
puzzle_store = PuzzleStore(db)
ledger_store = LedgerStore(db)
users = UserStore(db)

# Guests only live in this process; nothing about them is stored in the DB
guest_ledgers = GuestLedgers()


# -----------------------------
# Helpers
# -----------------------------
def get_lang():
    lang = session.get("lang", DEFAULT_LANG)
    return lang if lang in LANGUAGES else DEFAULT_LANG


def error(key, status, **kwargs):
    return jsonify({"error": t(get_lang(), key, **kwargs)}), status


def public_user(user):
    def iso(value):
        return value.isoformat() if hasattr(value, "isoformat") else value

    return {
        "id": user["id"],
        "username": user["username"],
        "email": user["email"],
        "created_at": iso(user.get("created_at")),
        "last_visited": iso(user.get("last_visited")),
    }


def current_player():
    """(player_ref, guest_ledger) for the session, or None when nobody is playing."""
    if "user_id" in session:
        return session["user_id"], None
    if "guest_id" in session:
        return None, guest_ledgers.get(session["guest_id"])
    return None


def start_session(**values):
    """Replace the session, keeping the chosen language and dropping any guest ledger."""
    lang = get_lang()
    if "guest_id" in session:
        guest_ledgers.discard(session["guest_id"])
    session.clear()
    session["lang"] = lang
    session["last_activity"] = datetime.now(UTC_TZ).isoformat()
    session.update(values)
    session.permanent = True
    session.modified = True


def login_user(user):
    start_session(user_id=user["id"], username=user["username"])
    if user.get("language") in LANGUAGES:
        session["lang"] = user["language"]


def password_error(password, confirm):
    if confirm is not None and password != confirm:
        return "passwords_mismatch"
    if len(password) < PASSWORD_MIN_LENGTH:
        return "password_min_length"
    return None


# -----------------------------
# Inactivity timeout
# -----------------------------
# Requests the client makes on its own (session polling, health checks)
# are not user activity and must not keep a session alive
PASSIVE_ENDPOINTS = {"api_session", "api_health"}


@app.before_request
def enforce_inactivity_timeout():
    if "user_id" not in session:
        return

    now = datetime.now(UTC_TZ)
    last = session.get("last_activity")
    if last:
        idle = now - datetime.fromisoformat(last)
        if idle > timedelta(minutes=INACTIVITY_MINUTES):
            app.logger.info("Session of user %s expired after %s idle", session["user_id"], idle)
            lang = get_lang()
            session.clear()
            session["lang"] = lang
            g.session_expired = True
            return

    if request.endpoint not in PASSIVE_ENDPOINTS:
        session["last_activity"] = now.isoformat()


@app.errorhandler(StoreUnavailable)
def handle_store_unavailable(exc):
    app.logger.error("⚠️ Database error: %s", exc, exc_info=exc)
    return error("store_unavailable", 503)


@app.errorhandler(InvalidGrid)
def handle_invalid_grid(exc):
    # A puzzle row in the database is malformed; players can't fix that
    app.logger.error("⚠️ Broken puzzle data: %s", exc, exc_info=exc)
    return error("store_unavailable", 503)


# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
@app.route("/api/health")
def api_health():
    if not db.ping(reconnect=True):
        return jsonify({"database": False}), 503
    return jsonify({"database": True})


# -------------------------------------------------------------------
# Session
# -------------------------------------------------------------------
@app.route("/api/session")
def api_session():
    if "user_id" in session:
        user = users.get_by_id(session["user_id"])
        if user:
            return jsonify({"valid": True, "guest": False, "user": public_user(user)})
        session.clear()

    if "guest_id" in session:
        return jsonify({"valid": True, "guest": True, "user": None})

    payload = {"valid": False, "guest": False, "user": None}
    if g.get("session_expired"):
        payload["message"] = t(get_lang(), "session_expired")
    return jsonify(payload)


# -------------------------------------------------------------------
# Sign up / Login / Logout
# -------------------------------------------------------------------
@app.route("/signup", methods=["POST"])
def signup():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    confirm = data.get("confirm_password")

    if not username or not email or not password:
        return error("missing_fields", 400)

    problem = password_error(password, confirm)
    if problem:
        return error(problem, 400, n=PASSWORD_MIN_LENGTH)

    if users.get_by_email(email):
        return error("email_taken", 409)
    if users.username_taken(username):
        return error("username_taken", 409)

    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    user = users.create(username, email, hashed, get_lang())

    login_user(user)
    app.logger.info("✅ New account %s", username)
    return jsonify({"user": public_user(user)}), 201


@app.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return error("missing_fields", 400)

    user = users.get_by_email(email)
    if not user or not bcrypt.checkpw(password.encode("utf-8"), user["password"].encode("utf-8")):
        return error("wrong_credentials", 401)

    users.touch_last_visited(user["id"])
    user = users.get_by_id(user["id"]) or user
    login_user(user)
    return jsonify({"user": public_user(user)})


@app.route("/logout", methods=["GET", "POST"])
def logout():
    lang = get_lang()
    if "guest_id" in session:
        guest_ledgers.discard(session["guest_id"])
    session.clear()
    return jsonify({"message": t(lang, "logged_out")})


# -------------------------------------------------------------------
# Guests
# -------------------------------------------------------------------
@app.route("/guest", methods=["POST"])
def guest_sign_in():
    guest_id = uuid.uuid4().hex
    start_session(guest_id=guest_id)
    guest_ledgers.get(guest_id)
    return jsonify({"guest": True})


@app.route("/guest/reset", methods=["POST"])
def guest_reset():
    # "Back home" for a guest: forget what they played and end the guest session
    guest_id = session.pop("guest_id", None)
    if guest_id:
        guest_ledgers.discard(guest_id)
    return jsonify({"guest": False})


def purge_idle_guests():
    guest_ledgers.purge_idle(GUEST_IDLE_MINUTES)


# -------------------------------------------------------------------
# Forgot / Reset Password
# -------------------------------------------------------------------
@app.route("/forgot_password", methods=["POST"])
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()

    user = users.get_by_email(email) if email else None
    if not user:
        return error("email_not_found", 404)

    lang = user.get("language") if user.get("language") in LANGUAGES else get_lang()

    token = s.dumps(email, salt="password-reset")
    reset_link = url_for("reset_password", token=token, _external=True)

    message = f"""{t(lang, "email_hi")} {user["username"]},

{t(lang, "reset_email_intro")}

{t(lang, "reset_email_click")}

{reset_link}

{t(lang, "reset_email_expire")}

Pixel Art
"""

    try:
        msg = Message(
            subject=t(lang, "reset_subject"),
            recipients=[email],
            body=message
        )
        mail.send(msg)
    except OSError:
        app.logger.exception("⚠️ forgot_password email error")
        return error("reset_email_failed", 503)

    return jsonify({"message": t(lang, "reset_email_sent")})


@app.route("/reset/<token>", methods=["POST"])
def reset_password(token):
    try:
        email = s.loads(token, salt="password-reset", max_age=RESET_TOKEN_MAX_AGE)
    except SignatureExpired:
        return error("reset_link_expired", 400)
    except BadSignature:
        return error("reset_link_invalid", 400)

    data = request.get_json(silent=True) or {}
    new_pass = data.get("password") or ""

    problem = password_error(new_pass, data.get("confirm_password"))
    if problem:
        return error(problem, 400, n=PASSWORD_MIN_LENGTH)

    hashed = bcrypt.hashpw(new_pass.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    users.update_password(email, hashed)

    return jsonify({"message": t(get_lang(), "password_reset_success")})


# -------------------------------------------------------------------
# Language
# -------------------------------------------------------------------
@app.route("/change_language", methods=["POST"])
def change_language():
    data = request.get_json(silent=True) or {}
    new_lang = data.get("lang")
    if new_lang not in LANGUAGES:
        new_lang = DEFAULT_LANG

    session["lang"] = new_lang
    if "user_id" in session:
        users.set_language(session["user_id"], new_lang)

    return jsonify({"lang": new_lang})


# -------------------------------------------------------------------
# Difficulty selection
# -------------------------------------------------------------------
@app.route("/api/difficulties")
def api_difficulties():
    lang = get_lang()
    return jsonify([
        {
            "key": key,
            "label": t(lang, f"difficulty_{key}"),
            "description": t(lang, desc_key),
        }
        for key, desc_key in DIFFICULTIES
    ])


# -------------------------------------------------------------------
# Puzzles
# -------------------------------------------------------------------
@app.route("/api/puzzles/<difficulty>")
def api_puzzle(difficulty):
    player = current_player()
    if player is None:
        return error("login_required", 401)

    difficulty = difficulty.lower()
    if difficulty not in DIFFICULTY_KEYS:
        return error("unknown_difficulty", 400)

    player_ref, guest_ledger = player
    ledger = ledger_for(player_ref, ledger_store, guest_ledger)

    try:
        result = select_unplayed_puzzle(puzzle_store, ledger, difficulty)
    except NoPuzzlesConfigured:
        app.logger.error("No puzzles configured for difficulty %s", difficulty)
        return error("no_puzzles_configured", 404)

    if isinstance(result, Exhausted):
        return jsonify({
            "exhausted": True,
            "difficulty": difficulty,
            "message": t(get_lang(), "no_puzzles_left"),
        })

    return jsonify({"exhausted": False, "puzzle": result.to_public_dict()})


@app.route("/api/puzzles/<puzzle_id>/seen", methods=["POST"])
def api_puzzle_seen(puzzle_id):
    """Called once when a puzzle is first shown, not on every submit."""
    player = current_player()
    if player is None:
        return error("login_required", 401)

    puzzle = puzzle_store.get_puzzle(puzzle_id)
    if puzzle is None:
        return error("puzzle_not_found", 404)

    player_ref, guest_ledger = player
    updated = record_played(ledger_for(player_ref, ledger_store, guest_ledger), puzzle.id)
    app.logger.info("📊 Puzzle %s tracked for %s, ledger size %d",
                    puzzle.id, player_ref or "guest", len(updated))

    return jsonify({"recent_count": len(updated)})


def parse_indices(raw, count):
    """List of distinct grid indices from the request, or None if any is unusable."""
    if not isinstance(raw, list):
        return None
    indices = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        if value < 0 or value >= count:
            return None
        if value in indices:
            return None
        indices.append(value)
    return indices


@app.route("/api/puzzles/<puzzle_id>/submit", methods=["POST"])
def api_puzzle_submit(puzzle_id):
    if current_player() is None:
        return error("login_required", 401)

    puzzle = puzzle_store.get_puzzle(puzzle_id)
    if puzzle is None:
        return error("puzzle_not_found", 404)

    data = request.get_json(silent=True) or {}
    indices = parse_indices(data.get("indices"), len(puzzle.available_grids))
    if indices is None:
        return error("invalid_selection", 400)

    selected = puzzle.grids_at(indices)
    correct = validate_solution(selected, puzzle.target)
    lang = get_lang()

    if not correct:
        return jsonify({"correct": False, "message": t(lang, "solution_wrong")})

    return jsonify({
        "correct": True,
        "message": t(lang, "solution_correct"),
        "frames": [grid_to_list(g) for g in reveal_frames(selected)],
    })


# -------------------------------------------------------------------
# Tutorial
# -------------------------------------------------------------------
@app.route("/api/tutorial")
def api_tutorial():
    puzzle = SAMPLE_PUZZLE
    payload = puzzle.to_public_dict()
    payload["solution_indices"] = list(puzzle.solution_indices)
    payload["frames"] = [
        grid_to_list(g) for g in reveal_frames(puzzle.grids_at(puzzle.solution_indices))
    ]
    return jsonify(payload)


# -------------------------------------------------------------------
# CLI: flask init-db / flask seed-puzzles
# -------------------------------------------------------------------
@app.cli.command("init-db")
def init_db_command():
    if not db.ping(reconnect=True):
        raise SystemExit("⚠️ Database unreachable, check DATABASE_URL")
    init_schema(db)
    print("✅ Tables created")


@app.cli.command("seed-puzzles")
def seed_puzzles_command():
    problems = check_puzzle(SAMPLE_PUZZLE)
    if problems:
        raise SystemExit(f"Puzzle {SAMPLE_PUZZLE.id} is broken: {', '.join(problems)}")
    puzzle_store.save_puzzle(SAMPLE_PUZZLE)
    print(f"✅ Puzzle {SAMPLE_PUZZLE.id} saved")


# -------------------------------------------------------------------
# Scheduler: forget idle guests
# -------------------------------------------------------------------
scheduler = BackgroundScheduler(timezone=UTC_TZ)
scheduler.add_job(func=purge_idle_guests, trigger="interval", minutes=GUEST_PURGE_INTERVAL_MINUTES)

if not app.debug and os.environ.get("PIXELART_SCHEDULER", "on") != "off":
    scheduler.start()


# -------------------------------------------------------------------
# Run
# -------------------------------------------------------------------
if __name__ == "__main__":
    app.run(debug=True)
