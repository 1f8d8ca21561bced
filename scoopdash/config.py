import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scoopdash.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Shared secret for cron-triggered endpoints (/cron/*)
CRON_SECRET = os.getenv("CRON_SECRET")

# Stripe Configuration (REST API, secret key auth)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_API_URL = os.getenv("STRIPE_API_URL", "https://api.stripe.com/v1")
# Endpoint signing secret (whsec_...) for /webhooks/stripe
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# Scheduling - all operating-hour math happens in the business timezone
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "America/Denver")
JOB_UNLOCK_HOUR = int(os.getenv("JOB_UNLOCK_HOUR", "8"))  # Jobs become claimable at 8 AM
JOB_CUTOFF_HOUR = int(os.getenv("JOB_CUTOFF_HOUR", "19"))  # No claims after 7 PM
ARRIVAL_WINDOW_MINUTES = int(os.getenv("ARRIVAL_WINDOW_MINUTES", "120"))
SERVICE_START_HOUR = int(os.getenv("SERVICE_START_HOUR", "7"))  # Local time new visits are scheduled for

# Employee earnings for a newly scheduled visit unless the admin sets one
DEFAULT_JOB_EARNINGS = float(os.getenv("DEFAULT_JOB_EARNINGS", "20.00"))

# Closest-N jobs shown to an employee (10 and 15 were both used historically)
AVAILABLE_JOBS_LIMIT = int(os.getenv("AVAILABLE_JOBS_LIMIT", "10"))

# Employees at or above this average rating may queue more than one job
QUEUE_RATING_THRESHOLD = float(os.getenv("QUEUE_RATING_THRESHOLD", "4.5"))

# Referral commission paid to the referrer once the referral converts
REFERRAL_COMMISSION = float(os.getenv("REFERRAL_COMMISSION", "25.00"))

# Rate limiting (Redis). Set RATE_LIMIT_ENABLED=false for local development/tests
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Frontend base URL for CORS defaults
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
