import os
from pydantic_settings import BaseSettings
from pymongo import MongoClient
import cloudinary
import cloudinary.uploader
import certifi
import logging


class Settings(BaseSettings):
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "marketplace_moderation")
    # Multi-document transactions need a replica set
    MONGO_TRANSACTIONS: bool = False
    MONGO_TIMEOUT_MS: int = 5000
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "mysecret")
    CLOUDINARY_URL: str | None = os.getenv("CLOUDINARY_URL")
    CLOUDINARY_CLOUD_NAME: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = os.getenv("CLOUDINARY_API_SECRET")
    AUTO_SUSPEND_THRESHOLD: int = 5
    AUTO_ESCALATE_REPORTS: bool = True
    NOTIFICATION_ALERT_TYPE: int = 2
    ENV: str = os.getenv("ENV", "development")

    class Config:
        env_file = ".env"


settings = Settings()
client = MongoClient(
    settings.MONGO_URI,
    tlsCAFile=certifi.where(),
    serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS,
    socketTimeoutMS=settings.MONGO_TIMEOUT_MS,
)


async def upload_image(image_data: bytes) -> str:
    result = cloudinary.uploader.upload(image_data)
    return result["secure_url"]


cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("marketplace-moderation (backend)")

db = client[settings.MONGO_DB_NAME]
