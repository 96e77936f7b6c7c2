"""
Configuration module for the DISCO! matching service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings
from typing import Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # FIREBASE CONFIGURATION (REQUIRED)
    # ============================================================
    FIREBASE_PROJECT_ID: str
    """Firebase project ID. Find in Firebase Console → Project Settings."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    # ============================================================
    # CHAT SERVICE (MESSAGING COLLABORATOR)
    # ============================================================
    CHAT_SERVICE_URL: str = os.getenv("CHAT_SERVICE_URL", "http://localhost:3000")
    """Base URL of the chat backend. Chat rooms are opened here on mutual acceptance."""

    CHAT_SERVICE_TOKEN: Optional[str] = None
    """Bearer token sent to the chat backend. Leave empty for unauthenticated dev setups."""

    CHAT_SERVICE_TIMEOUT: float = 15.0
    """Seconds to wait for the chat backend before giving up."""

    # ============================================================
    # MATCHING CONFIGURATION
    # ============================================================
    MAX_CANDIDATES: int = 100
    """Maximum candidates to fetch from Firestore per query. Default: 100."""

    SCORING_WORKERS: int = 8
    """Threads used to score candidates in parallel. Default: 8."""

    PERSIST_SCORED_MATCHES: bool = True
    """Record scored candidates as pending matches. Existing statuses are never overwritten."""

    # ============================================================
    # SECURITY CONFIGURATION
    # ============================================================
    SERVICE_TOKEN: str = os.getenv("SERVICE_TOKEN", "")
    """Shared secret for authenticating requests from the web backend."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    class Config:
        """Pydantic configuration."""
        env_file = ".env"  # Read from .env file
        case_sensitive = True  # Variable names are case-sensitive
        extra = "ignore"  # Ignore extra env vars not defined above


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each required field

    Raises:
        ValueError: If required config is missing
    """
    errors = []

    # Firebase is always required
    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    # Chat rooms are opened over HTTP
    if not str(config.CHAT_SERVICE_URL).startswith(("http://", "https://")):
        errors.append("CHAT_SERVICE_URL must start with http:// or https://")

    if config.SCORING_WORKERS < 1:
        errors.append("SCORING_WORKERS must be at least 1")

    if config.MAX_CANDIDATES < 1:
        errors.append("MAX_CANDIDATES must be at least 1")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "chat_service": f"✓ {config.CHAT_SERVICE_URL}",
        "chat_auth": "✓ Configured" if config.CHAT_SERVICE_TOKEN else "✗ Not set",
        "service_auth": "✓ Configured" if config.SERVICE_TOKEN else "✗ Disabled",
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m disco.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
