"""Runtime configuration.

All values come from the environment (a local .env is loaded first):

  SCORE_TTL_HOURS        hours a LeadScore stays in the priority queue (24)
  DEFAULT_LEAD_TIMEZONE  fallback when neither lead nor state gives one
  PRIORITY_QUEUE_LIMIT   default size of a campaign priority queue (100)
  SCORE_LIST_LIMIT       default page size when listing scores (50)
  LOG_LEVEL              level used by scripts/ entry points (INFO)

Usage:
    import settings
    ttl = settings.SCORE_TTL_HOURS
"""
import os

from dotenv import load_dotenv

load_dotenv()

SCORE_TTL_HOURS = int(os.environ.get("SCORE_TTL_HOURS", "24"))
DEFAULT_LEAD_TIMEZONE = os.environ.get("DEFAULT_LEAD_TIMEZONE", "America/New_York")
PRIORITY_QUEUE_LIMIT = int(os.environ.get("PRIORITY_QUEUE_LIMIT", "100"))
SCORE_LIST_LIMIT = int(os.environ.get("SCORE_LIST_LIMIT", "50"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
