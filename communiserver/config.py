from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_name: str = "Communiserver API"
    database_url: str = "sqlite:///./communiserver.db"
    api_prefix: str = "/api/v1"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth ----
    jwt_secret: str = "dev-change-me"
    jwt_exp_minutes: int = 60 * 24  # 1 day
    jwt_refresh_exp_minutes: int = 60 * 24 * 30
    password_pbkdf2_iters: int = 210_000

    # Bearer token used by server-side route handlers that have no user session.
    # Resolves to a synthetic ADMIN principal.
    system_api_token: str | None = None

    # ---- Verification ----
    verification_code_ttl_minutes: int = 30
    verification_code_length: int = 6

    # ---- Object storage (S3 / MinIO) ----
    s3_endpoint_url: str | None = None
    s3_region: str | None = "us-east-1"
    s3_bucket: str = "communiserver-evidence"
    s3_public_base_url: str | None = None
    s3_url_style: str = "path"  # path|virtual
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    upload_max_bytes: int = 10 * 1024 * 1024

    # ---- Seed ----
    seed_on_startup: bool = False
    admin_email: str = "admin@communiserver.local"
    admin_phone: str = "0780000000"
    admin_password: str = "ChangeMe123!"
    admin_names: str = "System Admin"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
