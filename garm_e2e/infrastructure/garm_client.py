"""
Cliente HTTP para la API REST de GARM.

Rol: Adaptador técnico entre las operaciones de dominio (crear repo,
listar pools, eliminar instancia, ...) y los endpoints del control plane.
Maneja autenticación, requests HTTP y traducción de errores.
Implementa el contrato FleetAPI del dominio.

No reintenta: la política de reintento pertenece al poller.

Depende de: requests library, pydantic para parsear respuestas.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter

from ..domain.contracts import FleetAPI
from ..domain.entities import (
    CreatePoolParams,
    CreateScopeParams,
    Instance,
    Pool,
    Scope,
    UpdateEntityParams,
    UpdatePoolParams,
    scope_model_for,
    to_payload,
)
from ..shared.constants import API_BASE_PATH, DEFAULT_TIMEOUT, SCOPE_ENDPOINTS, ScopeKind
from ..shared.infrastructure_exceptions import RemoteError
from ..shared.logging_utils import log_operation_error, log_operation_start, log_operation_success, log_payload

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GarmClient(FleetAPI):
    """Cliente HTTP para el control plane de runners."""

    def __init__(self, base_url: str, token: str, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        """
        Inicializa cliente de la API.

        Args:
            base_url: URL del servidor (ej: https://garm.example.com)
            token: Token JWT de autenticación
            timeout: Timeout para requests
            session: Sesión HTTP a reutilizar (opcional)
        """
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith(API_BASE_PATH):
            self.base_url += API_BASE_PATH
        self.timeout = timeout

        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "garm-e2e/0.1.0",
        }

        if session is None:
            session = requests.Session()
            # Sin reintentos a nivel de transporte
            adapter = HTTPAdapter(max_retries=0)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    # ===== TRANSPORTE =====

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """
        Ejecuta una llamada y retorna el JSON decodificado (None si no hay cuerpo).

        Raises:
            RemoteError: Falla de transporte o respuesta fuera de 2xx
        """
        operation = f"{method} {path}"
        log_operation_start(logger, operation)

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=self.headers, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            error = RemoteError(f"Error de transporte: {e}", method=method, path=path)
            log_operation_error(logger, operation, error)
            raise error from e

        if not response.ok:
            error = RemoteError(self._error_message(response), status_code=response.status_code,
                                method=method, path=path)
            log_operation_error(logger, operation, error)
            raise error

        log_operation_success(logger, operation, status=response.status_code)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            error = RemoteError(f"Respuesta no es JSON válido: {e}", status_code=response.status_code,
                                method=method, path=path)
            log_operation_error(logger, operation, error)
            raise error from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extrae el mensaje de error del cuerpo de la respuesta."""
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason or "Error desconocido"

        if isinstance(data, dict):
            details = data.get("details")
            error = data.get("error")
            if error and details:
                return f"{error}: {details}"
            return error or details or response.reason or "Error desconocido"
        return str(data)

    def _parse(self, model: Type[ModelT], data: Any, operation: str) -> ModelT:
        try:
            parsed = model.model_validate(data)
        except ValidationError as e:
            raise RemoteError(f"Respuesta inesperada en {operation}: {e}") from e
        log_payload(logger, operation, parsed)
        return parsed

    def _parse_list(self, model: Type[ModelT], data: Any, operation: str) -> List[ModelT]:
        try:
            parsed = [model.model_validate(item) for item in (data or [])]
        except ValidationError as e:
            raise RemoteError(f"Respuesta inesperada en {operation}: {e}") from e
        log_payload(logger, operation, parsed)
        return parsed

    @staticmethod
    def _scope_path(kind: ScopeKind, scope_id: Optional[str] = None) -> str:
        path = f"/{SCOPE_ENDPOINTS[kind]}"
        if scope_id is not None:
            path += f"/{scope_id}"
        return path

    # ===== SCOPES =====

    def list_scopes(self, kind: ScopeKind) -> List[Scope]:
        data = self._request("GET", self._scope_path(kind))
        return self._parse_list(scope_model_for(kind), data, f"list_{kind.value}")

    def create_scope(self, kind: ScopeKind, params: CreateScopeParams) -> Scope:
        data = self._request("POST", self._scope_path(kind), to_payload(params))
        return self._parse(scope_model_for(kind), data, f"create_{kind.value}")

    def get_scope(self, kind: ScopeKind, scope_id: str) -> Scope:
        data = self._request("GET", self._scope_path(kind, scope_id))
        return self._parse(scope_model_for(kind), data, f"get_{kind.value}")

    def update_scope(self, kind: ScopeKind, scope_id: str, params: UpdateEntityParams) -> Scope:
        data = self._request("PUT", self._scope_path(kind, scope_id), to_payload(params))
        return self._parse(scope_model_for(kind), data, f"update_{kind.value}")

    def delete_scope(self, kind: ScopeKind, scope_id: str) -> None:
        self._request("DELETE", self._scope_path(kind, scope_id))

    def list_scope_pools(self, kind: ScopeKind, scope_id: str) -> List[Pool]:
        data = self._request("GET", f"{self._scope_path(kind, scope_id)}/pools")
        return self._parse_list(Pool, data, f"list_{kind.value}_pools")

    def create_scope_pool(self, kind: ScopeKind, scope_id: str, params: CreatePoolParams) -> Pool:
        data = self._request("POST", f"{self._scope_path(kind, scope_id)}/pools", to_payload(params))
        return self._parse(Pool, data, f"create_{kind.value}_pool")

    def get_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str) -> Pool:
        data = self._request("GET", f"{self._scope_path(kind, scope_id)}/pools/{pool_id}")
        return self._parse(Pool, data, f"get_{kind.value}_pool")

    def update_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str, params: UpdatePoolParams) -> Pool:
        data = self._request("PUT", f"{self._scope_path(kind, scope_id)}/pools/{pool_id}", to_payload(params))
        return self._parse(Pool, data, f"update_{kind.value}_pool")

    def delete_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str) -> None:
        self._request("DELETE", f"{self._scope_path(kind, scope_id)}/pools/{pool_id}")

    def list_scope_instances(self, kind: ScopeKind, scope_id: str) -> List[Instance]:
        data = self._request("GET", f"{self._scope_path(kind, scope_id)}/instances")
        return self._parse_list(Instance, data, f"list_{kind.value}_instances")

    # ===== POOLS =====

    def list_pools(self) -> List[Pool]:
        return self._parse_list(Pool, self._request("GET", "/pools"), "list_pools")

    def get_pool(self, pool_id: str) -> Pool:
        return self._parse(Pool, self._request("GET", f"/pools/{pool_id}"), "get_pool")

    def update_pool(self, pool_id: str, params: UpdatePoolParams) -> Pool:
        data = self._request("PUT", f"/pools/{pool_id}", to_payload(params))
        return self._parse(Pool, data, "update_pool")

    def delete_pool(self, pool_id: str) -> None:
        self._request("DELETE", f"/pools/{pool_id}")

    # ===== INSTANCIAS =====

    def list_instances(self) -> List[Instance]:
        return self._parse_list(Instance, self._request("GET", "/instances"), "list_instances")

    def get_instance(self, name: str) -> Instance:
        return self._parse(Instance, self._request("GET", f"/instances/{name}"), "get_instance")

    def delete_instance(self, name: str) -> None:
        self._request("DELETE", f"/instances/{name}")

    def close(self):
        """Cierra la sesión HTTP."""
        if self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
