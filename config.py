import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()

class Config:
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "password")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "file_storage")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL") or (
        f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    JWT_ERROR_MESSAGE_KEY = "msg"

    # Blob storage
    STORAGE_ROOT = os.getenv("STORAGE_ROOT", "storage")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(512 * 1024 * 1024)))

    # Temporary archive links
    TEMP_DOWNLOAD_EXPIRES_SECONDS = int(os.getenv("TEMP_DOWNLOAD_EXPIRES_SECONDS", "900"))
    TEMP_FILE_MAX_AGE_HOURS = int(os.getenv("TEMP_FILE_MAX_AGE_HOURS", "1"))

    CORS_ORIGINS = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
    ).split(",")

    # Performance Monitoring Configuration
    SLOW_QUERY_THRESHOLD_MS = float(os.getenv("SLOW_QUERY_THRESHOLD_MS", "100"))
    PERMISSION_QUERY_THRESHOLD_MS = float(os.getenv("PERMISSION_QUERY_THRESHOLD_MS", "50"))
    BULK_OPERATION_THRESHOLD_MS = float(os.getenv("BULK_OPERATION_THRESHOLD_MS", "200"))
    ENABLE_PERFORMANCE_DEBUG = os.getenv("ENABLE_PERFORMANCE_DEBUG", "false").lower() == "true"
