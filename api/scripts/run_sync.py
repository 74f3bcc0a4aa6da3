"""
CLI: sincronizacion cache local <-> Supabase.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) con --full, o como proceso
    de larga vida con --watch (debounce + auto-sync + deteccion de
    cambios de otros procesos que comparten el cache).

Variables de entorno (ver core/config.py):
  - SUPABASE_URL, SUPABASE_KEY
  - CACHE_DATABASE_URL (por defecto sqlite:///mistral_cache.db)

Ejecución:
  python scripts/run_sync.py              # ciclo completo (igual que --full)
  python scripts/run_sync.py --pull
  python scripts/run_sync.py --push --tables mistral_gestion_clients
  python scripts/run_sync.py --watch
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `mistral_sync/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar .env antes de importar la configuracion (Settings se instancia al importar).
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from mistral_sync.application.services.sync_scheduler import SyncCycleResult, build_from_settings
from mistral_sync.core.config import settings
from mistral_sync.core.events import configure_logging
from mistral_sync.infrastructure.external.supabase_sync.table_mappings import get_table_bindings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sincronizacion cache local <-> Supabase")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--pull", action="store_true", help="Solo pull (remoto -> cache local).")
    mode.add_argument("--push", action="store_true", help="Solo push (cache local -> remoto).")
    mode.add_argument("--full", action="store_true", help="Pull y luego push (por defecto).")
    mode.add_argument(
        "--watch",
        action="store_true",
        help="Proceso de larga vida: auto-sync periodico y push por debounce hasta Ctrl+C.",
    )
    parser.add_argument(
        "--tables",
        nargs="+",
        metavar="COLLECTION",
        help="Limitar a estas colecciones locales (p.ej. mistral_gestion_clients).",
    )
    return parser.parse_args(argv)


def _log_result(result: SyncCycleResult) -> None:
    logger.info(
        f"Sync {result.kind}: pulled={result.pulled} pull_failed={result.pull_failed} "
        f"pushed={result.pushed} push_failed={result.push_failed}"
    )


async def _run(args: argparse.Namespace) -> int:
    bindings = get_table_bindings(args.tables)
    scheduler = build_from_settings(settings, bindings=bindings)

    if args.watch:
        await scheduler.start()
        try:
            # Queda vivo hasta cancelacion (Ctrl+C)
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()
        return 0

    scheduler.load_state()
    try:
        if args.pull:
            result = await scheduler.pull_all()
        elif args.push:
            result = await scheduler.push_all()
        else:
            result = await scheduler.full_sync()
    finally:
        await scheduler.stop(flush_pending=False)

    if result is None:
        return 1
    _log_result(result)
    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrumpido por el usuario")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
