import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    firebase_credentials: str
    firebase_project_id: str

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    mail_from_name: str

    frontend_url: str
    cors_origins: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///apex.db"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "me-central-1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        firebase_credentials=_getenv("FIREBASE_CREDENTIALS", ""),
        firebase_project_id=_getenv("FIREBASE_PROJECT_ID", ""),
        smtp_host=_getenv("SMTP_HOST", ""),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_user=_getenv("SMTP_USER", ""),
        smtp_pass=_getenv("SMTP_PASS", ""),
        mail_from_name=_getenv("MAIL_FROM_NAME", "Apex"),
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        cors_origins=_getenv("CORS_ORIGINS", ""),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "FIREBASE_CREDENTIALS": s.firebase_credentials,
        "FIREBASE_PROJECT_ID": s.firebase_project_id,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USER": s.smtp_user,
        "SMTP_PASS": s.smtp_pass,
        "MAIL_FROM_NAME": s.mail_from_name,
        "FRONTEND_URL": s.frontend_url,
        # comma-separated; "*" allows any origin
        "CORS_ORIGINS": [o.strip() for o in s.cors_origins.split(",") if o.strip()],
        "JSON_SORT_KEYS": False,
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
