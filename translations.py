from settings import DEFAULT_LANG, LANGUAGES

TRANSLATIONS = {
    "el": {
        # difficulty select
        "difficulty_easy": "ΕΥΚΟΛΟ",
        "difficulty_medium": "ΜΕΤΡΙΟ",
        "difficulty_hard": "ΔΥΣΚΟΛΟ",
        "difficulty_easy_desc": "Ιδανικό για αρχάριους",
        "difficulty_medium_desc": "Μια διασκεδαστική πρόκληση",
        "difficulty_hard_desc": "Μόνο για έμπειρους",

        # game
        "unknown_difficulty": "Άγνωστο επίπεδο δυσκολίας.",
        "no_puzzles_left": "Δεν έμειναν γρίφοι! Δοκίμασε άλλη δυσκολία ή έλα ξανά αργότερα.",
        "no_puzzles_configured": "Δεν υπάρχουν γρίφοι για αυτό το επίπεδο.",
        "puzzle_not_found": "Ο γρίφος δεν βρέθηκε.",
        "invalid_selection": "Διάλεξε τρία διαφορετικά τετράγωνα.",
        "solution_correct": "Σωστό! Μπράβο!",
        "solution_wrong": "Λάθος, δοκίμασε ξανά.",
        "store_unavailable": "Η βάση δεν είναι διαθέσιμη. Δοκίμασε αργότερα.",

        # auth
        "login_required": "Πρέπει να συνδεθείς ή να παίξεις ως επισκέπτης.",
        "missing_fields": "Συμπλήρωσε όλα τα πεδία!",
        "wrong_credentials": "Λάθος email ή κωδικός!",
        "email_taken": "Το email χρησιμοποιείται ήδη!",
        "username_taken": "Το username υπάρχει ήδη!",
        "passwords_mismatch": "Οι κωδικοί δεν ταιριάζουν.",
        "password_min_length": "Ο κωδικός πρέπει να έχει τουλάχιστον {n} χαρακτήρες!",
        "session_expired": "Η συνεδρία έληξε λόγω αδράνειας.",
        "logged_out": "Αποσυνδέθηκες.",

        # password reset
        "email_hi": "Γεια σου",
        "email_not_found": "Το email δεν βρέθηκε.",
        "reset_subject": "Επαναφορά κωδικού",
        "reset_email_intro": "Ζητήθηκε επαναφορά κωδικού για τον λογαριασμό σου.",
        "reset_email_click": "Πάτησε τον παρακάτω σύνδεσμο για να ορίσεις νέο κωδικό:",
        "reset_email_expire": "Ο σύνδεσμος ισχύει για 24 ώρες.",
        "reset_email_sent": "Στάλθηκε email επαναφοράς.",
        "reset_email_failed": "Σφάλμα αποστολής email. Δοκίμασε αργότερα.",
        "reset_link_expired": "Ο σύνδεσμος έληξε. Ζήτησε νέο.",
        "reset_link_invalid": "Μη έγκυρος σύνδεσμος.",
        "password_reset_success": "Ο κωδικός άλλαξε. Μπορείς να συνδεθείς.",
    },
    "en": {
        "difficulty_easy": "EASY",
        "difficulty_medium": "MEDIUM",
        "difficulty_hard": "HARD",
        "difficulty_easy_desc": "Perfect for beginners",
        "difficulty_medium_desc": "A fun challenge",
        "difficulty_hard_desc": "For experts only",

        "unknown_difficulty": "Unknown difficulty.",
        "no_puzzles_left": "No puzzles left! Try a different difficulty or check back later.",
        "no_puzzles_configured": "There are no puzzles for this difficulty.",
        "puzzle_not_found": "Puzzle not found.",
        "invalid_selection": "Pick three different squares.",
        "solution_correct": "Correct! Well done!",
        "solution_wrong": "Not quite, try again.",
        "store_unavailable": "The database is unavailable. Please try again later.",

        "login_required": "Log in or continue as guest first.",
        "missing_fields": "Please fill in all fields!",
        "wrong_credentials": "Wrong email or password!",
        "email_taken": "This email is already registered!",
        "username_taken": "This username already exists!",
        "passwords_mismatch": "Passwords do not match.",
        "password_min_length": "Password must be at least {n} characters!",
        "session_expired": "Your session expired after inactivity.",
        "logged_out": "You have been logged out.",

        "email_hi": "Hi",
        "email_not_found": "Email not found.",
        "reset_subject": "Password Reset",
        "reset_email_intro": "A password reset was requested for your account.",
        "reset_email_click": "Click the link below to set a new password:",
        "reset_email_expire": "The link is valid for 24 hours.",
        "reset_email_sent": "Reset email sent.",
        "reset_email_failed": "Could not send the email. Please try again later.",
        "reset_link_expired": "The link has expired. Request a new one.",
        "reset_link_invalid": "Invalid link.",
        "password_reset_success": "Password changed successfully. You can log in.",
    },
}


def t(lang: str, key: str, **kwargs) -> str:
    if lang not in LANGUAGES:
        lang = DEFAULT_LANG
    txt = TRANSLATIONS.get(lang, {}).get(key) or TRANSLATIONS["en"].get(key) or key
    if kwargs:
        try:
            return txt.format(**kwargs)
        except (KeyError, IndexError):
            return txt
    return txt
