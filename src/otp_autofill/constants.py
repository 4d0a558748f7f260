"""Constants for OTP Autofill."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".otp-autofill"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
ACCOUNTS_DB_PATH = CONFIG_DIR / "accounts.db"

# --- Google OAuth / Gmail API ---
SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/gmail.readonly",
]
MAX_EMAILS_TO_SCAN = 10
SCAN_WINDOW_SECONDS = 10 * 60  # only messages received in the last 10 minutes
REFRESH_ATTEMPTS = 3

# --- Token lifecycle ---
TOKEN_EXPIRY_BUFFER_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

# --- Message text extraction ---
MAX_PART_DEPTH = 10

# --- Scheduling / liveness ---
POLL_INTERVAL_SECONDS = 60
RESPONSE_TIMEOUT_SECONDS = 12
SUBMIT_DELAY_SECONDS = 0.4

# --- Page access ---
DEFAULT_CDP_URL = "http://localhost:9222"
NEARBY_FORM_TEXT_LIMIT = 200

# --- Field detection ---
OTP_FIELD_SELECTORS = [
    'input[autocomplete="one-time-code"]',
    'input[name*="otp"]',
    'input[name*="code"]',
    'input[name*="token"]',
    'input[name*="verify"]',
    'input[name*="verification"]',
    'input[placeholder*="code" i]',
    'input[placeholder*="otp" i]',
    'input[placeholder*="verification" i]',
    'input[type="number"][maxlength="6"]',
    'input[type="text"][maxlength="6"]',
    'input[type="number"][maxlength="4"]',
    'input[type="tel"][maxlength="6"]',
]
GENERIC_INPUT_SELECTOR = 'input[type="text"], input[type="number"], input[type="tel"]'
FALLBACK_MIN_LENGTH = 4
FALLBACK_MAX_LENGTH = 8

# --- Submit detection ---
SUBMIT_TYPED_SELECTOR = 'button[type="submit"], input[type="submit"]'
CLICKABLE_SELECTOR = 'button, [role="button"], a.btn, a.button'
FORM_SUBMIT_FALLBACK_SELECTOR = 'button[type="submit"], input[type="submit"], button:not([type])'
