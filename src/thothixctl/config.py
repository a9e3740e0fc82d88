"""thothixctl 설정 관리.

Configuration priority (highest to lowest):
1. Constructor arguments (CLI options)
2. Environment variables (THOTHIX_*)
3. Project .env file (VAULT_ADDR, VAULT_ROOT_TOKEN, VAULT_APP_TOKEN, ENVIRONMENT)
4. Defaults
"""

import os
from pathlib import Path
from typing import Any, Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from thothixctl.envfile import load_env_values

DEFAULT_ENV_FILE = ".env"

# Project .env keys -> settings fields
PROJECT_ENV_MAPPING = {
    "VAULT_ADDR": "vault_addr",
    "VAULT_ROOT_TOKEN": "vault_root_token",
    "VAULT_APP_TOKEN": "vault_app_token",
    "VAULT_SKIP_VERIFY": "vault_skip_verify",
    "ENVIRONMENT": "environment",
}


def _load_project_env(env_file: Path) -> dict[str, str]:
    """Map project .env values to settings fields / 프로젝트 .env 값을 설정 필드로 매핑.

    ENVIRONMENT and NODE_ENV from the process environment win over the file,
    matching how the compose stack resolves the environment label.
    """
    result = {}

    for key, value in load_env_values(env_file).items():
        if key in PROJECT_ENV_MAPPING and value:
            result[PROJECT_ENV_MAPPING[key]] = value

    label = os.environ.get("ENVIRONMENT") or os.environ.get("NODE_ENV")
    if label:
        result["environment"] = label

    return result


class ProjectEnvSource(PydanticBaseSettingsSource):
    """Custom settings source for the project .env file."""

    def __init__(self, settings_cls: Type[BaseSettings], env_file: Path):
        super().__init__(settings_cls)
        self.env_file = env_file

    def get_field_value(
        self, field: Any, field_name: str
    ) -> Tuple[Any, str, bool]:
        config = _load_project_env(self.env_file)
        if field_name in config:
            return config[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return _load_project_env(self.env_file)


class Settings(BaseSettings):
    """애플리케이션 설정."""

    model_config = SettingsConfigDict(
        env_prefix="THOTHIX_",
        extra="ignore",
    )

    env_file: Path = Field(
        default=Path(DEFAULT_ENV_FILE),
        description="Project .env file / 프로젝트 .env 파일",
    )
    environment: str = Field(
        default="development",
        description="Environment label used for display and token names",
    )

    # Vault 설정
    vault_addr: str = Field(
        default="http://localhost:8200",
        description="Vault 서버 주소",
    )
    vault_root_token: Optional[str] = Field(
        default=None,
        description="Vault root token (bootstrap, sync)",
    )
    vault_app_token: Optional[str] = Field(
        default=None,
        description="Vault application token",
    )
    vault_skip_verify: bool = Field(
        default=False,
        description="TLS 인증서 검증 스킵",
    )
    vault_mount: str = Field(
        default="thothix",
        description="KV v2 secrets engine 마운트 경로",
    )
    vault_service: str = Field(
        default="vault",
        description="Compose service running Vault",
    )

    # Readiness probe budgets
    sync_retries: int = Field(default=3, ge=1)
    sync_retry_interval: float = Field(default=1.0, ge=0)
    init_retries: int = Field(default=30, ge=1)
    init_retry_interval: float = Field(default=5.0, ge=0)

    # Database 설정
    db_container: str = Field(default="postgres", description="Postgres compose service")
    db_name: str = Field(default="thothix-db")
    db_user: str = Field(default="postgres")

    # Go backend
    backend_dir: Path = Field(default=Path("backend"))

    # ngrok
    ngrok_port: int = Field(default=30000, ge=1, le=65535)

    @property
    def vault_token(self) -> Optional[str]:
        """Root token wins over the application token."""
        return self.vault_root_token or self.vault_app_token

    def retry_budget(self, bootstrap: bool) -> Tuple[int, float]:
        """Readiness retry budget / 준비 상태 재시도 횟수와 간격."""
        if bootstrap:
            return self.init_retries, self.init_retry_interval
        return self.sync_retries, self.sync_retry_interval

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources.

        Priority (highest to lowest):
        1. init_settings (constructor args)
        2. env_settings (THOTHIX_* environment variables)
        3. project .env (VAULT_* keys, ENVIRONMENT)
        """
        init_kwargs = getattr(init_settings, "init_kwargs", {}) or {}
        env_file = init_kwargs.get("env_file") or os.environ.get("THOTHIX_ENV_FILE") or DEFAULT_ENV_FILE
        return (
            init_settings,
            env_settings,
            ProjectEnvSource(settings_cls, Path(env_file)),
        )


def load_settings(**overrides: Any) -> Settings:
    """Build settings, dropping unset CLI overrides / 설정 로드."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
