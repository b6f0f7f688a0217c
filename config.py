import os

from dotenv import load_dotenv

load_dotenv()

api_url = os.environ.get("BOOKING_API_URL", "http://localhost:3001/api")
api_timeout = float(os.environ.get("BOOKING_API_TIMEOUT", "10"))

# empty means the host's local zone
timezone_name = os.environ.get("BOOKING_TIMEZONE", "")

log_level = os.environ.get("LOG_LEVEL", "INFO")
