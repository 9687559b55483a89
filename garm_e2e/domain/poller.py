"""
Poller de ciclo de vida para transiciones de estado eventualmente consistentes.

Rol: Bloquear el flujo llamador hasta observar una transición remota
asíncrona (instancia lista, pool drenado, instancia eliminada) o escalar
con PollTimeoutError si nunca llega.
Ciclo: leer -> evaluar predicado -> retornar o dormir un intervalo fijo.

Los errores del adaptador se propagan sin reintento.

Depende de: entidades de dominio para los predicados.
"""

import logging
import random
import threading
import time
from typing import Callable, Iterable, List, Optional, TypeVar

from ..shared.constants import DEFAULT_POLL_INTERVAL, InstanceStatus, RunnerStatus
from ..shared.domain_exceptions import PollCancelledError, PollTimeoutError
from ..shared.logging_utils import log_operation_start, log_operation_success
from ..shared.validation_utils import validate_interval, validate_max_attempts, validate_timeout
from .entities import Instance, Pool

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT")
Predicate = Callable[[StateT], bool]


# ===== PREDICADOS =====

def instance_in_state(status: InstanceStatus, runner_status: Optional[RunnerStatus] = None) -> Predicate:
    """Alguna instancia del listado alcanzó el par de estados indicado."""
    def predicate(instances: Iterable[Instance]) -> bool:
        return any(instance.has_status(status, runner_status) for instance in instances)
    return predicate


def any_instance_ready(instances: Iterable[Instance]) -> bool:
    return any(instance.is_ready() for instance in instances)


def collection_empty(items) -> bool:
    return len(items) == 0


def pool_drained(pool: Pool) -> bool:
    return pool.is_drained()


def name_absent(name: str) -> Predicate:
    """El nombre ya no aparece en el listado de instancias."""
    def predicate(instances: Iterable[Instance]) -> bool:
        return all(instance.name != name for instance in instances)
    return predicate


class LifecyclePoller:
    """Primitiva de espera con intervalo fijo y límites configurables."""

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        jitter: float = 0.0,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Inicializa el poller.

        Args:
            interval: Segundos entre lecturas
            jitter: Máximo de segundos aleatorios añadidos al intervalo
            max_attempts: Máximo de lecturas por espera (None = sin límite)
            timeout: Límite de tiempo por espera en segundos (None = sin límite)
            cancel_event: Señal de cancelación revisada antes de cada lectura
            sleep: Función de espera (inyectable en pruebas)
            clock: Reloj monotónico (inyectable en pruebas)
        """
        self.interval = validate_interval(interval)
        self.jitter = validate_interval(jitter)
        self.max_attempts = validate_max_attempts(max_attempts)
        self.timeout = validate_timeout(timeout)
        self.cancel_event = cancel_event
        self.sleep = sleep
        self.clock = clock

    def wait_for(self, fetch: Callable[[], StateT], predicate: Predicate,
                 description: str = "condición") -> StateT:
        """
        Lee el estado hasta que el predicado se cumpla.

        Args:
            fetch: Lectura del estado remoto actual
            predicate: Función pura sobre el snapshot leído
            description: Texto para logs y errores

        Returns:
            El snapshot que satisfizo el predicado

        Raises:
            PollTimeoutError: Se agotaron los intentos o el plazo
            PollCancelledError: Se activó la señal de cancelación
        """
        log_operation_start(logger, "wait_for", condition=description, interval=self.interval,
                            max_attempts=self.max_attempts, timeout=self.timeout)
        started = self.clock()
        deadline = started + self.timeout if self.timeout is not None else None
        attempts = 0

        while True:
            self.check_cancelled(description, attempts)

            state = fetch()
            attempts += 1

            if predicate(state):
                log_operation_success(logger, "wait_for", condition=description, attempts=attempts)
                return state

            elapsed = self.clock() - started
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise PollTimeoutError(description, attempts, elapsed)
            if deadline is not None and self.clock() >= deadline:
                raise PollTimeoutError(description, attempts, elapsed)

            delay = self._next_delay()
            logger.info(f"ESPERA | {description} | intento={attempts} | reintento en {delay:.1f}s")
            self.sleep(delay)

    def check_cancelled(self, description: str, attempts: int = 0) -> None:
        """
        Aborta si la señal de cancelación está activa.

        Se invoca antes de cada lectura y entre pasos del escenario y del
        teardown, de modo que una cancelación no espera a la próxima espera.

        Raises:
            PollCancelledError: Si la señal está activa
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PollCancelledError(description, attempts)

    def _next_delay(self) -> float:
        if self.jitter:
            return self.interval + random.uniform(0, self.jitter)
        return self.interval

    # ===== ESPERAS DE CICLO DE VIDA =====

    def wait_for_ready_instance(self, fetch_instances: Callable[[], List[Instance]],
                                description: str = "instancia running/idle") -> Instance:
        """Espera a que alguna instancia esté running + idle y retorna la primera."""
        instances = self.wait_for(fetch_instances, any_instance_ready, description)
        ready = next(instance for instance in instances if instance.is_ready())
        logger.info(f"Instancia {ready.name} lista: status={ready.status} runner_status={ready.runner_status}")
        return ready

    def wait_for_drain(self, fetch_pool: Callable[[], Pool], description: str = "pool sin instancias") -> Pool:
        """Espera a que el listado de instancias del pool quede vacío."""
        return self.wait_for(fetch_pool, pool_drained, description)

    def wait_for_absence(self, fetch_instances: Callable[[], List[Instance]], name: str,
                         description: Optional[str] = None) -> List[Instance]:
        """Espera a que la instancia deje de aparecer en el listado."""
        return self.wait_for(fetch_instances, name_absent(name), description or f"instancia {name} eliminada")
