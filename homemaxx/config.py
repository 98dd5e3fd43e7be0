"""
Centralized configuration: env vars, vendor endpoints, business constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── HTTP ──────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
CORS_ALLOW_ORIGIN = os.getenv('CORS_ALLOW_ORIGIN', '*')

# ── GoHighLevel (CRM) ─────────────────────────────────────────────────────────
GHL_API_BASE = os.getenv('GHL_API_BASE', 'https://rest.gohighlevel.com/v1')
GHL_API_KEY = os.getenv('GHL_API_KEY')
GHL_CALENDAR_ID = os.getenv('GHL_CALENDAR_ID')
GHL_LOCATION_ID = os.getenv('GHL_LOCATION_ID')
GHL_ASSIGNED_USER_ID = os.getenv('GHL_ASSIGNED_USER_ID')
GHL_WEBHOOK_URL = os.getenv('GHL_WEBHOOK_URL')

# ── SendGrid ──────────────────────────────────────────────────────────────────
SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY')
SENDGRID_API_URL = 'https://api.sendgrid.com/v3/mail/send'
APPOINTMENTS_FROM_EMAIL = os.getenv('APPOINTMENTS_FROM_EMAIL', 'appointments@homemaxx.llc')
APPOINTMENTS_FROM_NAME = os.getenv('APPOINTMENTS_FROM_NAME', 'HomeMAXX Appointments')

# ── Property data providers ───────────────────────────────────────────────────
ATTOM_API_KEY = os.getenv('ATTOM_API_KEY')
ATTOM_API_URL = 'https://api.gateway.attomdata.com/propertyapi/v1.0.0/property/expandedprofile'
REALTYMOLE_API_KEY = os.getenv('REALTYMOLE_API_KEY')
REALTYMOLE_API_URL = 'https://api.realtymole.com/properties'

# ── Outbound timeouts (seconds) ───────────────────────────────────────────────
PROPERTY_LOOKUP_TIMEOUT = 12
CRM_TIMEOUT = 10
EMAIL_TIMEOUT = 10

# ── Offer slots ───────────────────────────────────────────────────────────────
TOTAL_SLOTS_PER_MONTH = int(os.getenv('TOTAL_SLOTS_PER_MONTH', 5))

# ── Funnel ────────────────────────────────────────────────────────────────────
PROGRESS_MAX_AGE_HOURS = 24
AUTO_ADVANCE_DELAY_SECONDS = 0.6
QUALIFIED_SCORE_THRESHOLD = 70

# ── Appointment scheduling ────────────────────────────────────────────────────
DEFAULT_TIMEZONE = os.getenv('DEFAULT_TIMEZONE', 'America/Los_Angeles')
BUSINESS_HOURS_START = 9
BUSINESS_HOURS_END = 18
BUSINESS_DAYS = (0, 1, 2, 3, 4)  # Monday..Friday
SLOT_MINUTES = 30
SCHEDULING_WINDOW_DAYS = 14

# ── Markets we buy in ─────────────────────────────────────────────────────────
TARGET_STATES = ['NV', 'TX', 'GA', 'FL', 'CA', 'AZ']
