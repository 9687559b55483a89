"""
Punto de entrada de línea de comandos.

Rol: Cargar configuración, construir cliente, poller y casos de uso, y
traducir el resultado a un código de salida.
Cualquier error no manejado se registra y termina el proceso con código
distinto de cero; no existe código de éxito parcial.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import List, Optional

from . import __version__
from .domain.poller import LifecyclePoller
from .domain.teardown import TeardownSequencer
from .infrastructure.config import Config, PollingConfig
from .infrastructure.garm_client import GarmClient
from .shared.infrastructure_exceptions import EXIT_OK, ErrorHandler
from .shared.logging_utils import mask_sensitive_data, setup_logging_config
from .use_cases.cleanup_scopes import CleanupScopes
from .use_cases.run_scenario import SCENARIOS, ScenarioDriver, build_scenario

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def build_poller(polling: PollingConfig, cancel_event: Optional[threading.Event] = None) -> LifecyclePoller:
    """Construye el poller a partir de la configuración."""
    return LifecyclePoller(
        interval=polling.interval,
        jitter=polling.jitter,
        max_attempts=polling.max_attempts,
        timeout=polling.timeout,
        cancel_event=cancel_event,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="garm-e2e",
        description="Ejercitador end-to-end de la API de GARM: repositorios, organizaciones, pools e instancias",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Nivel de logging (por defecto LOG_LEVEL o INFO)")
    parser.add_argument("--config", default=None, help="Ruta al config.toml de garm-cli")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Ejecuta un escenario completo")
    run_parser.add_argument("--scenario", choices=sorted(SCENARIOS), default=None,
                            help="Escenario a ejecutar (por defecto E2E_SCENARIO o 'full')")

    cleanup_parser = subparsers.add_parser("cleanup", help="Elimina los recursos de prueba que hayan quedado")
    cleanup_parser.add_argument("--dry-run", action="store_true", help="Solo listar objetivos sin eliminar")

    return parser


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """
    SIGINT/SIGTERM cancelan el escenario en el próximo paso o espera.

    La primera señal restaura los manejadores por defecto: una segunda
    señal interrumpe de inmediato (KeyboardInterrupt o terminación).
    """
    def _signal_handler(signum, frame):
        logger.info(f"Recibida señal {signum}, cancelando en el próximo paso")
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Función principal.

    Returns:
        Código de salida del proceso
    """
    args = build_parser().parse_args(argv)
    setup_logging_config(args.log_level)

    operation = f"garm-e2e {args.command}"
    try:
        config = Config.from_env(args.config, require_credentials=args.command == "run")
        if args.log_level is None:
            setup_logging_config(config.log_level)

        logger.info(f"Usando servidor {config.client.base_url} (token {mask_sensitive_data(config.client.token)})")

        cancel_event = threading.Event()
        install_signal_handlers(cancel_event)
        poller = build_poller(config.polling, cancel_event)

        with GarmClient(config.client.base_url, config.client.token, timeout=config.client.timeout) as client:
            if args.command == "run":
                name = args.scenario or config.scenario.scenario
                entries = build_scenario(name, config.scenario)
                report = ScenarioDriver(client, poller).execute(entries, name=name)
                logger.info(f"Escenario '{report.name}' completado: {len(report.steps)} pasos")
            else:
                cleanup = CleanupScopes(client, TeardownSequencer(client, poller), config.scenario)
                result = cleanup.execute(dry_run=args.dry_run)
                logger.info(result["message"])
                logger.info(json.dumps(result["targets"], indent=2))

    except KeyboardInterrupt:
        logger.info("Proceso interrumpido por usuario")
        return EXIT_INTERRUPTED
    except Exception as e:
        ErrorHandler.log_error(e, operation)
        return ErrorHandler.exit_code_for(e)

    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
