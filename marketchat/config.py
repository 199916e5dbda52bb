import logging
import os

from dotenv import load_dotenv


load_dotenv()

MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "marketchat")
REDIS_URL = os.getenv("REDIS_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# input cap for text messages, enforced by the request schema
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "500"))
RECENT_MESSAGES_LIMIT = int(os.getenv("RECENT_MESSAGES_LIMIT", "50"))


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)
