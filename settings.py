RECENT_LEDGER_CAP = 100  # Puzzle ids remembered per player before the oldest is dropped
INACTIVITY_MINUTES = 5  # Logged-in users are signed out after this many idle minutes
GUEST_IDLE_MINUTES = 30  # Guest ledgers untouched this long are purged from memory
GUEST_PURGE_INTERVAL_MINUTES = 1  # How often the scheduler looks for idle guests
PASSWORD_MIN_LENGTH = 6
RESET_TOKEN_MAX_AGE = 86400  # Password reset links are valid for 24 hours
SESSION_LIFETIME_DAYS = 30

DEFAULT_LANG = "en"
LANGUAGES = ("el", "en")

# Difficulty keys in display order, with the translation key of their blurb
DIFFICULTIES = (
    ("easy", "difficulty_easy_desc"),
    ("medium", "difficulty_medium_desc"),
    ("hard", "difficulty_hard_desc"),
)
DIFFICULTY_KEYS = tuple(key for key, _ in DIFFICULTIES)
