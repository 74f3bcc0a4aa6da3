"""
Cliente mínimo de Supabase REST (PostgREST) sin SDKs externos.

Requisitos cubiertos:
- httpx asincrono (las llamadas de red son los unicos puntos de suspension)
- lectura ordenada por updated_at desc, con filtro de igualdad opcional
- UPSERT idempotente con conflict target = campo id
- DELETE por id
- rate-limit/backoff (429, 5xx)
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from loguru import logger

from mistral_sync.shared.exceptions.sync import NetworkError, RemoteError, SyncConfigError

from .sync_config import FetchFilter
from .types import Record


@dataclass(frozen=True)
class SupabaseCredentials:
    url: str
    api_key: str


def _filter_literal(value: Any) -> str:
    """Serializa un valor para un filtro PostgREST (eq.<valor>)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class SupabaseRestClient:
    """
    Cliente HTTP de Supabase para el motor de sync.

    Importante:
    - No transforma registros: eso lo decide el transformer.
    - pull() lanza NetworkError/RemoteError; el caller decide que hacer
      con la tabla fallida (el ciclo sigue con las demas).
    - push() nunca lanza: registra el error y devuelve False.
    """

    def __init__(
        self,
        credentials: SupabaseCredentials,
        *,
        client: Optional[httpx.AsyncClient] = None,
        rest_path: str = "/rest/v1",
        timeout_s: float = 30.0,
        max_retries: int = 3,
        min_backoff_s: float = 0.5,
        max_backoff_s: float = 10.0,
    ) -> None:
        if not credentials.url or not credentials.api_key:
            raise SyncConfigError("Faltan SUPABASE_URL o SUPABASE_KEY para el cliente remoto")

        self._creds = credentials
        self._base_url = credentials.url.rstrip("/") + rest_path
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        """Cierra el cliente HTTP si fue creado aqui."""
        if self._owns_client:
            await self._client.aclose()

    async def pull(self, table_name: str, *, fetch_filter: Optional[FetchFilter] = None) -> list[Record]:
        """
        Lee todos los registros de una tabla, ordenados por updated_at desc.

        Args:
            table_name: tabla Supabase
            fetch_filter: filtro de igualdad opcional

        Returns:
            list[Record]: filas tal cual las devuelve Supabase

        Raises:
            NetworkError: fallo de transporte
            RemoteError: respuesta no-2xx
        """
        params: dict[str, str] = {"select": "*", "order": "updated_at.desc"}
        if fetch_filter is not None:
            params[fetch_filter.column] = f"eq.{_filter_literal(fetch_filter.value)}"

        resp = await self._request("GET", table_name, params=params)
        payload = resp.json()
        if not isinstance(payload, list):
            raise RemoteError(
                f"Respuesta inesperada al leer '{table_name}': se esperaba una lista",
                status_code=resp.status_code,
                table=table_name,
                body=resp.text,
            )
        return payload

    async def push(self, table_name: str, remote_record: Record, id_field: str = "id") -> bool:
        """
        UPSERT de un registro (insert o overwrite por id).

        Returns:
            bool: True si Supabase acepto la escritura
        """
        try:
            await self._request(
                "POST",
                table_name,
                params={"on_conflict": id_field},
                json=remote_record,
                extra_headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            )
            return True
        except (NetworkError, RemoteError) as e:
            logger.error(f"[sync] Error push {table_name} ({remote_record.get(id_field)}): {e.message}")
            return False

    async def delete(self, table_name: str, record_id: Any, id_field: str = "id") -> bool:
        """
        Borra un registro remoto por id.

        Borrar un id inexistente no es error (PostgREST responde 2xx igual).

        Returns:
            bool: True si Supabase acepto el borrado
        """
        try:
            await self._request(
                "DELETE",
                table_name,
                params={id_field: f"eq.{_filter_literal(record_id)}"},
                extra_headers={"Prefer": "return=minimal"},
            )
            return True
        except (NetworkError, RemoteError) as e:
            logger.error(f"[sync] Error delete {table_name} ({record_id}): {e.message}")
            return False

    async def _request(
        self,
        method: str,
        table_name: str,
        *,
        params: dict[str, str],
        json: Any = None,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Request HTTP con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx: exponencial con jitter.
        - 4xx (no 429): error inmediato (config/auth/RLS mal).
        - Error de transporte: se reintenta igual que un 5xx.
        """
        url = f"{self._base_url}/{table_name}"
        headers = {
            "apikey": self._creds.api_key,
            "Authorization": f"Bearer {self._creds.api_key}",
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)

        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.request(method, url, params=params, json=json, headers=headers)
            except httpx.TransportError as e:
                if attempt >= self._max_retries:
                    raise NetworkError(
                        f"Fallo de red en {method} {table_name} tras {attempt} reintentos: {e}",
                        table=table_name,
                    ) from e
                await asyncio.sleep(self._backoff(attempt))
                continue

            if 200 <= resp.status_code < 300:
                return resp

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise RemoteError(
                        f"Supabase error {resp.status_code} tras {attempt} reintentos en {table_name}",
                        status_code=resp.status_code,
                        table=table_name,
                        body=resp.text,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    sleep_s = self._backoff(attempt)

                await asyncio.sleep(sleep_s)
                continue

            # Errores no recuperables
            raise RemoteError(
                f"Supabase {method} {table_name} falló {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
                table=table_name,
                body=resp.text,
            )

        # Inalcanzable: el loop siempre retorna o lanza
        raise NetworkError(f"Sin respuesta para {method} {table_name}", table=table_name)

    def _backoff(self, attempt: int) -> float:
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return base + random.uniform(0, 0.15 * base)
