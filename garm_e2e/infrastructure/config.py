"""
Configuración y validación centralizada de la aplicación.

Rol: Cargar variables de entorno y el perfil de garm-cli, validar y
proveer defaults.
Centraliza toda la configuración del ejercitador en un solo lugar.
Provee configuración tipada y validada para toda la aplicación.

Depende de: variables de entorno, pydantic para validación.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..shared.constants import (
    DEFAULT_ORG_NAME,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_JITTER,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_PROVIDER_NAME,
    DEFAULT_REPO_NAME,
    DEFAULT_TIMEOUT,
    GARM_CLI_CONFIG_PATH,
)
from ..shared.infrastructure_exceptions import ConfigurationError
from ..shared.validation_utils import (
    validate_interval,
    validate_max_attempts,
    validate_scope_name,
    validate_timeout,
)

logger = logging.getLogger(__name__)


class ClientProfile(BaseModel):
    """Perfil de cliente: URL base y token del control plane."""

    base_url: str = Field(..., description="URL base del servidor GARM")
    token: str = Field(..., description="Token JWT de autenticación")
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="Timeout para requests")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Valida esquema de la URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url debe comenzar con http:// o https://")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v):
        if not v:
            raise ValueError("El token no puede estar vacío")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_request_timeout(cls, v):
        return validate_timeout(v)


class PollingConfig(BaseModel):
    """Configuración del poller de ciclo de vida."""

    interval: float = Field(default=DEFAULT_POLL_INTERVAL, description="Intervalo de polling en segundos")
    jitter: float = Field(default=DEFAULT_POLL_JITTER, description="Jitter máximo añadido al intervalo")
    max_attempts: Optional[int] = Field(default=None, description="Máximo de lecturas por espera")
    timeout: Optional[float] = Field(default=DEFAULT_POLL_TIMEOUT, description="Límite por espera en segundos")

    @field_validator("interval", "jitter")
    @classmethod
    def validate_intervals(cls, v):
        return validate_interval(v)

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v):
        return validate_max_attempts(v)

    @field_validator("timeout")
    @classmethod
    def validate_poll_timeout(cls, v):
        return validate_timeout(v)


class ScenarioSettings(BaseModel):
    """Parámetros del escenario provistos por el entorno."""

    credentials_name: str = Field(default="", description="Nombre del set de credenciales de GitHub")
    repo_webhook_secret: str = Field(default="", description="Webhook secret del repositorio")
    org_webhook_secret: str = Field(default="", description="Webhook secret de la organización")
    org_name: str = Field(default=DEFAULT_ORG_NAME, description="Organización (y owner del repo)")
    repo_name: str = Field(default=DEFAULT_REPO_NAME, description="Repositorio de prueba")
    provider_name: str = Field(default=DEFAULT_PROVIDER_NAME, description="Proveedor de los pools")
    scenario: str = Field(default="full", description="Escenario a ejecutar")

    @field_validator("org_name", "repo_name")
    @classmethod
    def validate_names(cls, v):
        return validate_scope_name(v)


class Config(BaseSettings):
    """Configuración centralizada de la aplicación."""

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", case_sensitive=False,
                                      extra="ignore")

    client: ClientProfile = Field(..., description="Perfil del cliente")
    polling: PollingConfig = Field(default_factory=PollingConfig, description="Configuración del poller")
    scenario: ScenarioSettings = Field(..., description="Parámetros del escenario")
    log_level: str = Field(default="INFO", description="Nivel de logging")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Valida nivel de logging."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level debe ser uno de: {valid_levels}")
        return v.upper()

    @classmethod
    def from_env(cls, profile_path: Optional[str] = None, require_credentials: bool = True) -> "Config":
        """
        Carga configuración desde variables de entorno.

        GARM_BASE_URL y GARM_TOKEN tienen prioridad sobre el perfil activo
        de garm-cli, que solo se lee si falta alguno de los dos.
        CREDENTIALS_NAME solo se exige cuando require_credentials es True
        (el comando run lo usa para crear repositorios y organizaciones).
        """
        base_url = os.getenv("GARM_BASE_URL")
        token = os.getenv("GARM_TOKEN")

        if not (base_url and token):
            profile = load_cli_profile(profile_path or os.getenv("GARM_CLI_CONFIG", GARM_CLI_CONFIG_PATH))
            base_url = base_url or profile.get("base_url")
            token = token or profile.get("token")

        if not base_url or not token:
            raise ConfigurationError(
                "No se encontró perfil de cliente: defina GARM_BASE_URL y GARM_TOKEN o ejecute garm-cli login"
            )

        credentials_name = os.getenv("CREDENTIALS_NAME", "")
        if require_credentials and not credentials_name:
            raise ConfigurationError("CREDENTIALS_NAME es obligatorio para ejecutar escenarios")

        try:
            return cls(
                client=ClientProfile(
                    base_url=base_url,
                    token=token,
                    timeout=float(os.getenv("GARM_TIMEOUT", DEFAULT_TIMEOUT)),
                ),
                polling=PollingConfig(
                    interval=float(os.getenv("POLL_INTERVAL", DEFAULT_POLL_INTERVAL)),
                    jitter=float(os.getenv("POLL_JITTER", DEFAULT_POLL_JITTER)),
                    max_attempts=_optional_int(os.getenv("POLL_MAX_ATTEMPTS")),
                    timeout=_optional_float(os.getenv("POLL_TIMEOUT"), DEFAULT_POLL_TIMEOUT),
                ),
                scenario=ScenarioSettings(
                    credentials_name=credentials_name,
                    repo_webhook_secret=os.getenv("REPO_WEBHOOK_SECRET", ""),
                    org_webhook_secret=os.getenv("ORG_WEBHOOK_SECRET", ""),
                    org_name=os.getenv("ORG_NAME", DEFAULT_ORG_NAME),
                    repo_name=os.getenv("REPO_NAME", DEFAULT_REPO_NAME),
                    provider_name=os.getenv("PROVIDER_NAME", DEFAULT_PROVIDER_NAME),
                    scenario=os.getenv("E2E_SCENARIO", "full"),
                ),
                log_level=os.getenv("LOG_LEVEL", "INFO"),
            )
        except (ValidationError, ValueError) as e:
            logger.error(f"Error cargando configuración: {e}")
            raise ConfigurationError(f"Error en configuración: {e}") from e


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "" or value.strip().lower() == "none":
        return None
    return int(value)


def _optional_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or value.strip() == "":
        return default
    if value.strip().lower() == "none":
        return None
    return float(value)


def load_cli_profile(path: str, manager_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Lee el perfil de un manager desde el config.toml de garm-cli.

    Args:
        path: Ruta al archivo de configuración
        manager_name: Manager a usar (por defecto active_manager o el primero)

    Returns:
        Diccionario con name, base_url y token, vacío si el archivo no existe

    Raises:
        ConfigurationError: Si el archivo no es TOML válido o el manager no existe
    """
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        logger.debug(f"Perfil de garm-cli no encontrado en {config_path}")
        return {}

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Config de garm-cli inválido ({config_path}): {e}") from e

    # garm-cli guarda cada manager en una tabla [[manager]] con bearer_token
    managers = data.get("manager") or []
    if not managers:
        return {}

    wanted = manager_name or data.get("active_manager")
    if wanted:
        selected = next((m for m in managers if m.get("name") == wanted), None)
        if selected is None:
            raise ConfigurationError(f"Manager '{wanted}' no existe en {config_path}")
    else:
        selected = managers[0]

    return {
        "name": selected.get("name"),
        "base_url": selected.get("base_url"),
        "token": selected.get("bearer_token"),
    }


# Instancia global de configuración
_config: Optional[Config] = None


def get_config(profile_path: Optional[str] = None) -> Config:
    """Obtiene instancia de configuración (singleton)."""
    global _config

    if _config is None:
        _config = Config.from_env(profile_path)

    return _config


def reload_config(profile_path: Optional[str] = None) -> Config:
    """Recarga la configuración desde variables de entorno."""
    global _config
    _config = None
    return get_config(profile_path)
