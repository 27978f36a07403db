import os

from dotenv import find_dotenv, load_dotenv


def _env_int(name, default):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Settings:
    def __init__(self):
        self.api_host = os.environ.get("API_HOST", "0.0.0.0")
        self.api_port = _env_int("API_PORT", 8080)
        self.registry = os.environ.get("REGISTRY", "")
        self.content_length = _env_int("CONTENT_LENGTH", 200)
        self.invocation_timeout = _env_int("INVOCATION_TIMEOUT", 300)
        self.log_write_mode = os.environ.get("LOG_WRITE_MODE", "console")
        self.log_path = os.environ.get("LOG_PATH", "logs/")
        self.log_level = os.environ.get("LOG_LEVEL", "DEBUG")
        self.version = os.environ.get("APP_VERSION", "0.1.0")
        self.build_date = os.environ.get("BUILD_DATE", "")
        self.commit = os.environ.get("GIT_COMMIT", "")


def load_settings():
    # Load environment variables
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    return Settings()
