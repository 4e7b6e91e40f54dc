from __future__ import annotations

import dataclasses
import os


def _coalesce_env(primary: str, aliases: list[str]) -> str | None:
    v = os.environ.get(primary)
    if v:
        return v
    for a in aliases:
        v2 = os.environ.get(a)
        if v2:
            return v2
    return None


@dataclasses.dataclass(frozen=True)
class Settings:
    mongo_uri: str
    mongo_db: str
    jwt_secret: str
    jwt_expires_days: int = 30
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_timeout_s: float | None = None
    max_profile_image_bytes: int = 5 * 1024 * 1024
    port: int = 8080

    @staticmethod
    def from_env() -> "Settings":
        mongo_uri = _coalesce_env("MONGO_URI", ["MONGODB_URI"])
        mongo_db = os.getenv("MONGO_DB")
        jwt_secret = os.getenv("JWT_SECRET")

        if not mongo_uri:
            raise RuntimeError("MONGO_URI environment variable is not set")
        if not mongo_db:
            raise RuntimeError("MONGO_DB environment variable is not set")
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET environment variable is not set")

        timeout = os.getenv("GEMINI_TIMEOUT_S")
        return Settings(
            mongo_uri=mongo_uri,
            mongo_db=mongo_db,
            jwt_secret=jwt_secret,
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "30")),
            gemini_api_key=_coalesce_env("GEMINI_API_KEY", ["GOOGLE_API_KEY"]),
            gemini_model=os.getenv("GEMINI_MODEL") or "gemini-2.5-flash",
            gemini_timeout_s=float(timeout) if timeout else None,
            max_profile_image_bytes=int(os.getenv("MAX_PROFILE_IMAGE_BYTES", str(5 * 1024 * 1024))),
            port=int(os.getenv("PORT", "8080")),
        )
