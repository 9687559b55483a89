"""
garm-e2e - Ejercitador end-to-end para GARM

Versión: 0.1.0
Arquitectura: Clean Architecture con DDD
Propósito: Recorrer el ciclo de vida de repositorios, organizaciones,
pools e instancias contra un control plane real
"""

__version__ = "0.1.0"
__author__ = "garm-e2e Team"
__description__ = "End-to-end exerciser for the GARM runner-fleet API"

# Exportaciones principales del dominio
from .domain.entities import Instance, Organization, Pool, Repository
from .domain.poller import LifecyclePoller
from .domain.provisioner import IdempotentProvisioner
from .domain.session import ScenarioSession, ScopeBinding
from .domain.teardown import TeardownSequencer, TeardownStage

# Exportaciones de casos de uso
from .use_cases.run_scenario import ScenarioDriver, ScenarioEntry, build_scenario
from .use_cases.cleanup_scopes import CleanupScopes

# Exportaciones de infraestructura
from .infrastructure.garm_client import GarmClient
from .infrastructure.config import Config

__all__ = [
    # Versión y metadata
    "__version__",
    "__author__",
    "__description__",

    # Entidades de dominio
    "Instance",
    "Organization",
    "Pool",
    "Repository",

    # Núcleo de orquestación
    "LifecyclePoller",
    "IdempotentProvisioner",
    "ScenarioSession",
    "ScopeBinding",
    "TeardownSequencer",
    "TeardownStage",

    # Casos de uso
    "ScenarioDriver",
    "ScenarioEntry",
    "build_scenario",
    "CleanupScopes",

    # Infraestructura
    "GarmClient",
    "Config",
]
