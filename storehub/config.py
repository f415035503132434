from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    database_url: str = 'sqlite+pysqlite:///./storehub.db'
    session_cookie_name: str = 'storehub_session'
    session_ttl_minutes: int = 720
    session_cookie_secure: bool = False
    session_cookie_samesite: str = 'lax'

    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    task_due_minutes: int = 30

    carton_history_limit: int = 100
    event_log_retention: int = 1000

    seed_demo_data: bool = True
    log_level: str = 'INFO'

    @property
    def database_url_normalized(self) -> str:
        url = self.database_url.strip()
        if url.startswith('postgres://'):
            return 'postgresql+psycopg://' + url[len('postgres://') :]
        if url.startswith('postgresql://'):
            return 'postgresql+psycopg://' + url[len('postgresql://') :]
        return url


settings = Settings()
