"""Service configuration read from the environment"""
import os
from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return (
        f"postgresql+asyncpg://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME')}"
    )


class Settings:
    """Environment-backed settings, resolved once at import time"""

    def __init__(self):
        self.database_url = _database_url()
        self.db_echo = os.getenv("DB_ECHO", "false").lower() == "true"
        self.store_timeout_seconds = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

        self.keycloak_url = os.getenv("KEYCLOAK_URL")
        self.keycloak_realm = os.getenv("KEYCLOAK_REALM")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "RS256")
        self.permissions_file = os.getenv("PERMISSIONS_FILE")

        self.max_package_size = int(os.getenv("MAX_PACKAGE_SIZE", "50"))
        self.package_interval_days = int(os.getenv("PACKAGE_INTERVAL_DAYS", "7"))
        self.clinic_timezone = os.getenv("CLINIC_TIMEZONE", "Europe/Paris")
        self.uploads_dir = os.getenv("UPLOADS_DIR", "uploads")

        self.push_gateway_url = os.getenv("PUSH_GATEWAY_URL")
        self.push_gateway_api_key = os.getenv("PUSH_GATEWAY_API_KEY")
        self.push_timeout_seconds = float(os.getenv("PUSH_TIMEOUT_SECONDS", "5"))

        self.rabbitmq_host = os.getenv("RABBITMQ_HOST")
        self.rabbitmq_port = int(os.getenv("RABBITMQ_PORT", "5672"))
        self.rabbitmq_user = os.getenv("RABBITMQ_USER", "guest")
        self.rabbitmq_password = os.getenv("RABBITMQ_PASSWORD", "guest")
        self.rabbitmq_session_exchange = os.getenv("RABBITMQ_SESSION_EXCHANGE", "session.events")

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
