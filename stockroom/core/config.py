import os

# Database Configuration
# Holds the outbox journal of emitted records. Defaults to the local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/stockroom_db")

# Application Metadata
PROJECT_NAME = "Stockroom Kitchen Inventory Service"
VERSION = "1.0.0"

# Outbox Poller Configuration (delivers alerts and summaries to the notification sink)
POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 1)) # Poller checks for new events every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Max retries for an event
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 50)) # How many events to fetch per poll

# Monitor Configuration
NEAR_EXPIRY_DAYS = 3 # Batches expiring within N days are near_expiry
EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", 1)) # Dashboard "expiring soon" window

# Daily Summary Configuration
SUMMARY_RECIPIENTS = [r.strip() for r in os.getenv("SUMMARY_RECIPIENTS", "").split(",") if r.strip()]
DEFAULT_HYGIENE_STATUS = os.getenv("DEFAULT_HYGIENE_STATUS", "pending")

# Startup
SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "").lower() in ("1", "true", "yes") # Load demo outlets and catalog on boot
