"""
Entidades remotas y parámetros de las operaciones del control plane.

Rol: Modelar las representaciones que devuelve la API (Repository,
Organization, Pool, Instance) y los cuerpos de creación/actualización.
El orquestador solo guarda referencias; estas entidades son snapshots
de estado remoto, nunca estado propio.

Depende de: pydantic para parseo y validación.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..shared.constants import InstanceStatus, OSArch, OSType, RunnerStatus, ScopeKind
from ..shared.validation_utils import validate_owner, validate_pool_bounds, validate_scope_name, validate_tags


class RemoteModel(BaseModel):
    """Base de los snapshots remotos; ignora campos desconocidos."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Tag(RemoteModel):
    id: Optional[str] = None
    name: str


class Instance(RemoteModel):
    """Snapshot de una instancia efímera creada por un pool."""

    id: Optional[str] = None
    name: str
    status: str = InstanceStatus.UNKNOWN.value
    runner_status: str = Field(default="", description="Estado del runner en GitHub")
    pool_id: Optional[str] = None
    os_type: Optional[str] = None
    os_arch: Optional[str] = None

    def has_status(self, status: InstanceStatus, runner_status: Optional[RunnerStatus] = None) -> bool:
        """Verifica el par (estado de instancia, estado de runner)."""
        if self.status != status.value:
            return False
        return runner_status is None or self.runner_status == runner_status.value

    def is_ready(self) -> bool:
        """Una instancia está lista cuando corre y su runner está idle."""
        return self.has_status(InstanceStatus.RUNNING, RunnerStatus.IDLE)


class Pool(RemoteModel):
    """Snapshot de un pool de runners."""

    id: str
    repo_id: Optional[str] = None
    org_id: Optional[str] = None
    provider_name: Optional[str] = None
    image: str = ""
    flavor: str = ""
    os_type: Optional[str] = None
    os_arch: Optional[str] = None
    tags: List[Tag] = Field(default_factory=list)
    max_runners: int = 0
    min_idle_runners: int = 0
    enabled: bool = False
    instances: List[Instance] = Field(default_factory=list)

    @field_validator("tags", "instances", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        # La API serializa listas vacías como null
        return v or []

    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]

    def instance_names(self) -> List[str]:
        return [instance.name for instance in self.instances]

    def is_drained(self) -> bool:
        return not self.instances


class Repository(RemoteModel):
    id: str
    owner: str = ""
    name: str = ""
    credentials_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class Organization(RemoteModel):
    id: str
    name: str = ""
    credentials_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return self.name


Scope = Union[Repository, Organization]


def scope_model_for(kind: ScopeKind):
    """Retorna el modelo pydantic correspondiente al tipo de scope."""
    return Repository if kind == ScopeKind.REPOSITORY else Organization


# ===== PARÁMETROS DE OPERACIONES =====

class CreateRepoParams(BaseModel):
    """Cuerpo para registrar un repositorio."""

    owner: str
    name: str
    credentials_name: str
    webhook_secret: str = ""

    @field_validator("owner")
    @classmethod
    def _validate_owner(cls, v):
        return validate_owner(v)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v):
        return validate_scope_name(v)


class CreateOrgParams(BaseModel):
    """Cuerpo para registrar una organización."""

    name: str
    credentials_name: str
    webhook_secret: str = ""

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v):
        return validate_scope_name(v)


CreateScopeParams = Union[CreateRepoParams, CreateOrgParams]


class UpdateEntityParams(BaseModel):
    """Actualización parcial de un scope: solo se envían los campos no nulos."""

    credentials_name: Optional[str] = None
    webhook_secret: Optional[str] = None


class CreatePoolParams(BaseModel):
    """Cuerpo para crear un pool bajo un scope."""

    provider_name: str
    max_runners: int = Field(ge=0)
    min_idle_runners: int = Field(ge=0)
    image: str
    flavor: str
    os_type: OSType = OSType.LINUX
    os_arch: OSArch = OSArch.AMD64
    tags: List[str]
    enabled: bool = True

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        return validate_tags(v)

    @model_validator(mode="after")
    def _validate_bounds(self):
        validate_pool_bounds(self.min_idle_runners, self.max_runners)
        return self


class UpdatePoolParams(BaseModel):
    """Actualización parcial de un pool: todos los campos son opcionales."""

    max_runners: Optional[int] = Field(default=None, ge=0)
    min_idle_runners: Optional[int] = Field(default=None, ge=0)
    image: Optional[str] = None
    flavor: Optional[str] = None
    os_type: Optional[OSType] = None
    os_arch: Optional[OSArch] = None
    tags: Optional[List[str]] = None
    enabled: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        if v is None:
            return None
        return validate_tags(v)

    @model_validator(mode="after")
    def _validate_bounds(self):
        validate_pool_bounds(self.min_idle_runners, self.max_runners)
        return self


def to_payload(params: BaseModel) -> dict:
    """Serializa parámetros omitiendo los campos no suministrados."""
    return params.model_dump(mode="json", exclude_none=True)
