import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

AUTH_PATH = "/api/auth"
AUTH_CALLBACK_PATH = "/api/auth/callback"
WEBHOOKS_PATH = "/api/webhooks"


def _port() -> int:
    return int(os.getenv("BACKEND_PORT") or os.getenv("PORT") or "3000")


def _static_path(environment: str) -> str:
    if environment == "production":
        return os.path.join(os.getcwd(), "frontend", "dist")
    return os.path.join(os.getcwd(), "frontend")


@dataclass(frozen=True)
class Settings:
    api_key: str
    api_secret: str
    scopes: str
    host: str
    api_version: str
    port: int
    environment: str
    static_path: str
    database_url: str
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        port = _port()
        environment = os.getenv("NODE_ENV", "development")
        host = os.getenv("HOST") or os.getenv("SHOPIFY_APP_URL") or f"http://localhost:{port}"

        return cls(
            api_key=os.getenv("SHOPIFY_API_KEY", ""),
            api_secret=os.getenv("SHOPIFY_API_SECRET", ""),
            scopes=os.getenv("SCOPES", "write_products"),
            host=host.rstrip("/"),
            api_version=os.getenv("SHOPIFY_API_VERSION", "2024-01"),
            port=port,
            environment=environment,
            static_path=_static_path(environment),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./database.sqlite"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def scope_list(self) -> set[str]:
        return {s.strip() for s in self.scopes.split(",") if s.strip()}
