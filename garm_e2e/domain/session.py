"""
Sesión explícita de un escenario.

Rol: Guardar las referencias (IDs y nombres) de los recursos remotos que
un escenario provisiona, y pasarlas a cada operación del núcleo.
Una referencia que ningún paso estableció produce SessionStateError en
lugar de un ID vacío enviado a la API.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..shared.constants import ERROR_MESSAGES, ScopeKind
from ..shared.domain_exceptions import SessionStateError


@dataclass
class ScopeBinding:
    """Referencias de un scope, su pool y las instancias observadas."""

    label: str
    kind: Optional[ScopeKind]
    scope_id: Optional[str] = None
    scope_name: Optional[str] = None
    pool_id: Optional[str] = None
    instance_names: List[str] = field(default_factory=list)
    teardown_order: int = 0
    # Pool gestionado por los endpoints globales /pools; scope_id apunta al
    # scope padre, que pertenece a otro binding
    scopeless: bool = False

    def require_scope(self) -> str:
        if not self.scope_id:
            raise SessionStateError(f"{self.label}: {ERROR_MESSAGES['scope_not_set']}")
        return self.scope_id

    def require_pool(self) -> str:
        if not self.pool_id:
            raise SessionStateError(f"{self.label}: {ERROR_MESSAGES['pool_not_set']}")
        return self.pool_id

    def remember_instance(self, name: str) -> None:
        if name not in self.instance_names:
            self.instance_names.append(name)


@dataclass
class ScenarioSession:
    """Contexto compartido por todos los pasos de un escenario."""

    bindings: Dict[str, ScopeBinding] = field(default_factory=dict)
    steps: List[str] = field(default_factory=list)

    def bind(self, label: str, kind: Optional[ScopeKind], teardown_order: int = 0,
             scopeless: bool = False) -> ScopeBinding:
        """Registra (o retorna) el binding de una entrada del escenario."""
        if label not in self.bindings:
            self.bindings[label] = ScopeBinding(label=label, kind=kind, teardown_order=teardown_order,
                                                scopeless=scopeless)
        return self.bindings[label]

    def get(self, label: str) -> ScopeBinding:
        try:
            return self.bindings[label]
        except KeyError:
            raise SessionStateError(f"No hay binding registrado para '{label}'") from None

    def record(self, step: str) -> None:
        self.steps.append(step)

    def teardown_targets(self) -> List[ScopeBinding]:
        """Bindings en orden de teardown (estable respecto al orden de registro)."""
        return sorted(self.bindings.values(), key=lambda b: b.teardown_order)
