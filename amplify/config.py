from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Centralized application configuration with type validation.
    Automatically reads variables from the environment and the .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- General Settings ---
    SERVICE_ROLE: str = "mover"  # "watcher" or "mover"
    LOG_LEVEL: str = "INFO"
    PORT: int = 8080

    # --- Google Drive Settings ---
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None
    GDRIVE_TOKEN_JSON: Optional[str] = None
    DRIVE_ID: Optional[str] = None  # Shared drive, if any

    # --- Mover Settings ---
    INPUT_FOLDER_ID: Optional[str] = None
    TEMP_FOLDER_ID: Optional[str] = None
    OUTPUT_FOLDER_ID: Optional[str] = None
    OUTPUT_MODE: str = "move"  # "move" or "copy"
    PROCESSING_DELAY_SECONDS: float = 2.0

    # --- Watcher Settings ---
    DRIVE_FOLDER_ID: Optional[str] = None
    WATCH_MODE: str = "push"  # "push" or "poll"
    CHANNEL_ID: Optional[str] = None
    WEBHOOK_URL: Optional[str] = None
    WATCH_CALLBACK_URL: Optional[str] = None  # Drive push address, defaults to WEBHOOK_URL
    RELAY_MODE: str = "webhook"  # "webhook" or "pubsub"
    PUBSUB_TOPIC: Optional[str] = None
    GCP_PROJECT_ID: Optional[str] = None
    POLL_INTERVAL_SECONDS: float = 5.0
    RECENCY_WINDOW_SECONDS: float = 5.0

    # --- Constants and Computed Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent

    @model_validator(mode="before")
    def validate_role_settings(cls, values):
        role = values.get("SERVICE_ROLE")
        if not role:
            # Fall back to the field default, which is the mover.
            role = "mover"

        if role == "mover":
            required_mover_keys = ["INPUT_FOLDER_ID", "TEMP_FOLDER_ID", "OUTPUT_FOLDER_ID"]
            for key in required_mover_keys:
                if not values.get(key) or not str(values.get(key)).strip():
                    raise ValueError(f"{key} is required when SERVICE_ROLE is 'mover'")

            output_mode = values.get("OUTPUT_MODE", "move")
            if output_mode not in ("move", "copy"):
                raise ValueError("Invalid OUTPUT_MODE. Must be 'move' or 'copy'.")

        elif role == "watcher":
            if not values.get("DRIVE_FOLDER_ID"):
                raise ValueError("DRIVE_FOLDER_ID is required when SERVICE_ROLE is 'watcher'")

            watch_mode = values.get("WATCH_MODE", "push")
            if watch_mode == "push":
                if not values.get("CHANNEL_ID"):
                    raise ValueError("CHANNEL_ID is required when WATCH_MODE is 'push'")
                if not values.get("WATCH_CALLBACK_URL") and not values.get("WEBHOOK_URL"):
                    raise ValueError("WEBHOOK_URL is required when WATCH_MODE is 'push' and WATCH_CALLBACK_URL is not set")
            elif watch_mode != "poll":
                raise ValueError("Invalid WATCH_MODE. Must be 'push' or 'poll'.")

            relay_mode = values.get("RELAY_MODE", "webhook")
            if relay_mode == "webhook":
                if not values.get("WEBHOOK_URL"):
                    raise ValueError("WEBHOOK_URL is required when RELAY_MODE is 'webhook'")
            elif relay_mode == "pubsub":
                if not values.get("PUBSUB_TOPIC"):
                    raise ValueError("PUBSUB_TOPIC is required when RELAY_MODE is 'pubsub'")
                # A fully qualified topic path carries its own project.
                topic = str(values.get("PUBSUB_TOPIC"))
                if not topic.startswith("projects/") and not values.get("GCP_PROJECT_ID"):
                    raise ValueError(
                        "GCP_PROJECT_ID is required unless PUBSUB_TOPIC is a full 'projects/.../topics/...' path"
                    )
            else:
                raise ValueError("Invalid RELAY_MODE. Must be 'webhook' or 'pubsub'.")

        else:
            raise ValueError("Invalid SERVICE_ROLE. Must be 'watcher' or 'mover'.")

        return values

    @property
    def LOG_FILE(self) -> Path:
        return self.BASE_DIR / "app.log"


@lru_cache()
def get_settings(role: Optional[str] = None) -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings.
    An explicit `role` overrides SERVICE_ROLE from the environment.
    """
    if role:
        return Settings(SERVICE_ROLE=role)
    return Settings()
