import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Booking rules. Amounts are minor currency units (cents).
BOOKING_FEE_CENTS = int(os.getenv("BOOKING_FEE_CENTS", "1000"))
SLOT_INCREMENT_MINUTES = int(os.getenv("SLOT_INCREMENT_MINUTES", "30"))
BOOKING_MIN_DAYS_AHEAD = int(os.getenv("BOOKING_MIN_DAYS_AHEAD", "1"))
BOOKING_MAX_DAYS_AHEAD = int(os.getenv("BOOKING_MAX_DAYS_AHEAD", "30"))
MAX_PATIENT_NOTES_LENGTH = int(os.getenv("MAX_PATIENT_NOTES_LENGTH", "1000"))

# Remote function gateway. The primary channel posts to
# {FUNCTIONS_BASE_URL}/functions/v1/<name>; the fallback channel is derived
# from the same host as https://<project-ref>.functions.<domain>/<name>.
FUNCTIONS_BASE_URL = os.getenv("FUNCTIONS_BASE_URL", "http://localhost:8000")
FUNCTIONS_API_KEY = os.getenv("FUNCTIONS_API_KEY", "")
FUNCTIONS_TIMEOUT_SECONDS = float(os.getenv("FUNCTIONS_TIMEOUT_SECONDS", "15"))

PAYFAST_SANDBOX = _get_bool(os.getenv("PAYFAST_SANDBOX"), default=True)
PAYFAST_PROCESS_URL = os.getenv(
    "PAYFAST_PROCESS_URL",
    "https://sandbox.payfast.co.za/eng/process" if PAYFAST_SANDBOX else "https://www.payfast.co.za/eng/process",
)
PAYFAST_MERCHANT_ID = os.getenv("PAYFAST_MERCHANT_ID", "10000100")
PAYFAST_MERCHANT_KEY = os.getenv("PAYFAST_MERCHANT_KEY", "46f0cd694581a")
PAYFAST_PASSPHRASE = os.getenv("PAYFAST_PASSPHRASE", "")
PAYFAST_RETURN_URL = os.getenv("PAYFAST_RETURN_URL", "http://localhost:5173/booking-success")
PAYFAST_CANCEL_URL = os.getenv("PAYFAST_CANCEL_URL", "http://localhost:5173/booking-history")
PAYFAST_NOTIFY_URL = os.getenv("PAYFAST_NOTIFY_URL", "http://localhost:8000/payments/payfast/notify")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if APP_ENV.lower() == "production" and PAYFAST_SANDBOX:
        raise RuntimeError("PAYFAST_SANDBOX must be disabled in production.")
