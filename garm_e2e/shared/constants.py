"""
Constantes globales de la aplicación.

Rol: Definir constantes usadas en todo el ejercitador.
Estados remotos de instancias y runners, tipos de scope, valores por defecto.
Centraliza valores mágicos y configuraciones fijas.

Depende de: enums para estados, typing para tipos.
"""

from enum import Enum
from typing import List

# Constantes de configuración
DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_POLL_JITTER = 0.0
DEFAULT_POLL_TIMEOUT = 1200.0
API_BASE_PATH = "/api/v1"
GARM_CLI_CONFIG_PATH = "~/.local/share/garm-cli/config.toml"


# Tipos de scope
class ScopeKind(Enum):
    """Tipos de scope que pueden poseer pools."""
    REPOSITORY = "repository"
    ORGANIZATION = "organization"


# Estados de instancias (ciclo de vida en el proveedor)
class InstanceStatus(Enum):
    """Estados posibles de una instancia."""
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    PENDING_CREATE = "pending_create"
    CREATING = "creating"
    PENDING_DELETE = "pending_delete"
    DELETING = "deleting"
    DELETED = "deleted"
    UNKNOWN = "unknown"


# Estados del runner dentro de la instancia
class RunnerStatus(Enum):
    """Estados posibles del runner registrado en GitHub."""
    PENDING = "pending"
    INSTALLING = "installing"
    IDLE = "idle"
    ACTIVE = "active"
    FAILED = "failed"
    TERMINATED = "terminated"


class OSType(Enum):
    """Sistemas operativos soportados por los pools."""
    LINUX = "linux"
    WINDOWS = "windows"


class OSArch(Enum):
    """Arquitecturas soportadas por los pools."""
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"


# Rutas REST por tipo de scope
SCOPE_ENDPOINTS = {
    ScopeKind.REPOSITORY: "repositories",
    ScopeKind.ORGANIZATION: "organizations",
}

# Nombres usados por el escenario
DEFAULT_ORG_NAME = "test-garm-org"
DEFAULT_REPO_NAME = "test-garm-repo"

# Configuración por defecto de pools
DEFAULT_PROVIDER_NAME = "lxd_local"
DEFAULT_FLAVOR = "garm"
DEFAULT_IMAGE = "ubuntu:22.04"
EXTRA_POOL_IMAGE = "ubuntu:20.04"
DEFAULT_POOL_TAGS: List[str] = ["ubuntu", "simple-runner"]
ORG_POOL_TAGS: List[str] = ["ubuntu", "simple-runner", "org-runner"]
DEFAULT_MAX_RUNNERS = 2
DEFAULT_MIN_IDLE_RUNNERS = 0
UPDATED_MAX_RUNNERS = 5
UPDATED_MIN_IDLE_RUNNERS = 1
CREDENTIALS_CLONE_SUFFIX = "-clone"

# Expresiones regulares para validación
SCOPE_NAME_PATTERN = r"^[a-zA-Z0-9_.-]{1,100}$"
TAG_PATTERN = r"^[a-zA-Z0-9_.:-]{1,64}$"

# Mensajes de error estándar
ERROR_MESSAGES = {
    "scope_not_set": "El scope no fue provisionado en esta sesión",
    "pool_not_set": "El pool no fue provisionado en esta sesión",
}
