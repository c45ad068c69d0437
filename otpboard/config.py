from dotenv import load_dotenv
import os
from pathlib import Path

env_path = Path(os.getenv("OTPBOARD_ENV_FILE", Path.cwd() / "secrets.env"))

load_dotenv(dotenv_path=env_path)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- DATABASE ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./otpboard.db")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", 10))

# --- AUTH & OTP ---
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", 10))
OTP_REAPER_INTERVAL_SECONDS = int(os.getenv("OTP_REAPER_INTERVAL_SECONDS", 60))  # 0 disables

# --- EMAIL CONFIG ---
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "smtp")  # smtp | console
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp-mail.outlook.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SENDER_EMAIL = os.getenv("SENDER_EMAIL", SMTP_USER)
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", 30))
MAIL_DRAIN_TIMEOUT_SECONDS = float(os.getenv("MAIL_DRAIN_TIMEOUT_SECONDS", 30))
CONTACT_RECIPIENT = os.getenv("CONTACT_RECIPIENT", SENDER_EMAIL)

# --- REDIS / LOGIN THROTTLE ---
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_DB = int(os.getenv("REDIS_DB", 0))
REDIS_TIMEOUT_SECONDS = float(os.getenv("REDIS_TIMEOUT_SECONDS", 5))
LOGIN_THROTTLE_ENABLED = _flag("LOGIN_THROTTLE_ENABLED", "true")
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", 5))
ATTEMPT_RESET = int(os.getenv("ATTEMPT_RESET", 300))  # seconds

# --- BOARDS ---
BOARD_LOCK_TIMEOUT_SECONDS = float(os.getenv("BOARD_LOCK_TIMEOUT_SECONDS", 10))
BOARD_WRITE_RETRIES = int(os.getenv("BOARD_WRITE_RETRIES", 3))

# --- APP CONFIG ---
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
APP_PORT = int(os.getenv("APP_PORT", 8000))

if EMAIL_BACKEND == "smtp" and not SMTP_USER:
    print("WARNING: SMTP_USER not loaded! Check secrets.env")
