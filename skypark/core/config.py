from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Solo para desarrollo local; en producción JWT_SECRET es obligatorio
DEV_JWT_SECRET = "skypark-super-secret-key-for-development-only"


class Settings(BaseSettings):
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Base de datos
    db_url: str = Field("sqlite+aiosqlite:///./skypark.sqlite3", alias="DB_URL")

    # JWT
    jwt_secret: str = Field(DEV_JWT_SECRET, alias="JWT_SECRET")
    jwt_alg: str = Field("HS256", alias="JWT_ALG")
    jwt_issuer: str = Field("skypark-api", alias="JWT_ISSUER")
    jwt_leeway_seconds: int = Field(0, alias="JWT_LEEWAY_SECONDS")
    access_token_ttl_seconds: int = Field(15 * 60, alias="ACCESS_TOKEN_TTL_SECONDS")
    refresh_token_ttl_seconds: int = Field(7 * 24 * 3600, alias="REFRESH_TOKEN_TTL_SECONDS")

    # Códigos SMS
    sms_code_ttl_seconds: int = Field(5 * 60, alias="SMS_CODE_TTL_SECONDS")
    sms_code_length: int = Field(6, alias="SMS_CODE_LENGTH")
    sms_max_attempts: int = Field(3, alias="SMS_MAX_ATTEMPTS")
    sms_sweep_interval_seconds: int = Field(60, alias="SMS_SWEEP_INTERVAL_SECONDS")  # 0 = sin barrido activo
    sms_log_codes: bool = Field(True, alias="SMS_LOG_CODES")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,  # permite defaults si no hay variable de entorno
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEV_JWT_SECRET


settings = Settings()
