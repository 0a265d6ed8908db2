import os


class Settings:
    PROJECT_NAME: str = "kotoba"
    DEBUG: bool = os.environ.get("KOTOBA_DEBUG", "") == "1"
    LOG_DIR: str = os.environ.get("KOTOBA_LOG_DIR", "log")
    LOG_FILE: str = "kotoba.log"
    DB_DIR: str = os.environ.get("KOTOBA_DB_DIR", "db")
    DB_FILE: str = "kotoba_logs.db"
    DATA_DIR: str = os.environ.get("KOTOBA_DATA_DIR", "data")
    SOURCES_FILE: str = "word_sources.json"
    EXPORT_DIR: str = os.environ.get("KOTOBA_EXPORT_DIR", "exports")
    IMPORT_TIMEOUT_SECONDS: float = float(
        os.environ.get("KOTOBA_IMPORT_TIMEOUT", "15")
    )
    QUIZ_OPTION_COUNT: int = 4
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")

    @property
    def sources_path(self) -> str:
        return os.path.join(self.DATA_DIR, self.SOURCES_FILE)

    @property
    def db_path(self) -> str:
        return os.path.join(self.DB_DIR, self.DB_FILE)


settings = Settings()
