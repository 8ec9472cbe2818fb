import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# ------------------------------------------------------
# ENV
# ------------------------------------------------------
load_dotenv()

STORE_BACKENDS = ("database", "memory")
RESET_POLICIES = ("delete", "clear")


def _env_int(name, default, minimum=None, maximum=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {value}")
    return value


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_choice(name, default, choices):
    value = (os.getenv(name) or default).strip().lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


@dataclass
class Settings:
    database_url: str = "sqlite:///./image_draw.db"
    image_store: str = "database"
    draw_quota: int = 1
    reset_policy: str = "delete"
    max_groups: int = 10
    group_advance_delay_ms: int = 1500
    max_upload_images: int = 0  # 0 means no limit
    validate_image_data: bool = False
    log_file: str = "app.log"
    log_level: str = "INFO"
    cors_origins: list = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 9000


def get_settings() -> Settings:
    """Build settings from the environment (and a .env file, if present)."""
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./image_draw.db"),
        image_store=_env_choice("IMAGE_STORE", "database", STORE_BACKENDS),
        draw_quota=_env_int("DRAW_QUOTA", 1, minimum=1),
        reset_policy=_env_choice("RESET_POLICY", "delete", RESET_POLICIES),
        max_groups=_env_int("MAX_GROUPS", 10, minimum=1),
        group_advance_delay_ms=_env_int("GROUP_ADVANCE_DELAY_MS", 1500, minimum=0),
        max_upload_images=_env_int("MAX_UPLOAD_IMAGES", 0, minimum=0),
        validate_image_data=_env_bool("VALIDATE_IMAGE_DATA"),
        log_file=os.getenv("LOG_FILE", "app.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 9000, minimum=1, maximum=65535),
    )
