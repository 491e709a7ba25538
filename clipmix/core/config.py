from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PROJECT_SAMPLE_RATE: int = 44100
    CHANNELS: int = 2                     # output is always interleaved stereo
    DEFAULT_QUALITY: float = 0.7

    RESAMPLE_RES_TYPE: str | None = None  # None -> soxr_hq if installed, else kaiser_fast
    DECODE_WORKERS: int = 4
    SOURCE_DIR: str | None = None         # base dir for relative source names (None = cwd)

    LOG_LEVEL: str = "INFO"


settings = Settings()
