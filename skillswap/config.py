import logging
import os
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env (only for local development)
if os.getenv("FLASK_ENV") != "production":
    load_dotenv()
    logger.debug("Loaded .env file for local development.")


class Config:
    """Base configuration."""

    # General settings
    SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///skillswap.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sessions and credits
    SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
    STARTING_CREDITS = int(os.getenv("STARTING_CREDITS", "100"))
    ADMIN_STARTING_CREDITS = int(os.getenv("ADMIN_STARTING_CREDITS", "1000"))
    BCRYPT_LOG_ROUNDS = int(os.getenv("BCRYPT_LOG_ROUNDS", "12"))

    # AWS S3 configuration
    AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY")
    AWS_SECRET_KEY = os.getenv("AWS_SECRET_KEY")
    AWS_BUCKET_NAME = os.getenv("BUCKET_NAME", "skillswap-uploads")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
    STORAGE_URL_TTL = int(os.getenv("STORAGE_URL_TTL", "3600"))

    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'pdf', 'doc', 'docx'}
    IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif'}

    # CORS configuration
    CORS_ORIGINS = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()
    ]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Debug mode
    DEBUG = os.getenv("FLASK_ENV") != "production"


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BCRYPT_LOG_ROUNDS = 4
    AWS_ACCESS_KEY = "testing"
    AWS_SECRET_KEY = "testing"
    AWS_BUCKET_NAME = "skillswap-test"
    AWS_REGION = "us-east-1"
    LOG_LEVEL = "WARNING"
