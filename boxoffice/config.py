import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory").lower()
    SEED_DATA = _flag("SEED_DATA", "true")

    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
    TABLE_NAME = os.getenv("BOX_OFFICE_TABLE_NAME")
    DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    DEBUG = _flag("DEBUG", "false")


settings = Settings()
