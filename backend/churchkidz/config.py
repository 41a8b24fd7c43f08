"""
Configuration centrale du service local via variables d'environnement.
Charger depuis un fichier .env en développement.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Base locale (file d'attente offline + cache du roster)
    OFFLINE_DB_URL: str = "sqlite:///./churchkidz-offline.db"

    # Backend hébergé (Supabase / PostgREST)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_KEY: str = ""
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Sonde de connectivité : petite ressource statique, sans cache
    PROBE_URL: str = "http://localhost:54321/favicon.ico"
    PROBE_TIMEOUT_SECONDS: float = 3.0
    CONNECTIVITY_CHECK_SECONDS: int = 15

    # Règles métier
    ROSTER_CACHE_MAX_AGE_HOURS: int = 24
    NOTES_MAX_LENGTH: int = 500

    # Environnement
    ENV: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
