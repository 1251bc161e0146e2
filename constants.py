import os


def positive_int(name: str, default: int) -> int:
    value = int(os.getenv(name, default))
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return value


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

ROOM_CODE_LENGTH = positive_int("ROOM_CODE_LENGTH", 6)
ROOM_CODE_ATTEMPTS = positive_int("ROOM_CODE_ATTEMPTS", 100)

# Messages waiting to be written to one client before it is treated as gone
OUTBOX_MAX_SIZE = positive_int("OUTBOX_MAX_SIZE", 256)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
