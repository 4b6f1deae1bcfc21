"""
Client HTTP pour l'API json.freeastrologyapi.com (positions planétaires).

Encapsule l'appel `POST /planets`: construction du corps, en-tête `x-api-key`, timeouts bornés et
validation structurelle minimale de la réponse. Toute défaillance devient une `ProviderError`.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from chartcache.app.metrics import PROVIDER_ERRORS, PROVIDER_LATENCY
from chartcache.domain.entities import ChartCalculationParams
from chartcache.domain.errors import ProviderError
from chartcache.infra.astro.base import ChartProvider

log = structlog.get_logger(__name__)

MIN_OUTPUT_BLOCKS = 2
PLANETS_PATH = "/planets"


def validate_payload(payload: Any) -> dict[str, Any]:
    """Vérifie la forme de la réponse: objet JSON avec une liste `output` d'au moins deux blocs."""
    if not isinstance(payload, dict):
        raise ProviderError("provider returned a non-object payload", kind="malformed")
    status = payload.get("statusCode")
    if status is not None and status != 200:  # noqa: PLR2004
        raise ProviderError(f"provider reported status {status}", kind="status")
    output = payload.get("output")
    if not isinstance(output, list) or len(output) < MIN_OUTPUT_BLOCKS:
        raise ProviderError("provider payload has no planetary output", kind="malformed")
    if not all(isinstance(block, dict) for block in output[:MIN_OUTPUT_BLOCKS]):
        raise ProviderError("provider output blocks are not objects", kind="malformed")
    return payload


class FreeAstrologyApiProvider(ChartProvider):
    """Fournisseur basé sur l'API Free Astrology (synchrone, httpx)."""

    name = "freeastrologyapi"

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout_s: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialise le client HTTP.

        Args:
            base_url: URL racine de l'API (sans `/planets`).
            api_key: clé transmise dans `x-api-key`.
            timeout_s: borne appliquée à la connexion, la lecture, l'écriture et au pool.
            client: client httpx injecté (tests); sinon créé ici.
        """
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        timeout = httpx.Timeout(timeout_s)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self._client = client or httpx.Client(headers=headers, timeout=timeout, limits=limits)
        if client is not None:
            self._client.headers.update(headers)

    def _fail(self, kind: str, message: str, err: Exception | None = None) -> ProviderError:
        PROVIDER_ERRORS.labels(provider=self.name, kind=kind).inc()
        log.warning("provider_error", provider=self.name, kind=kind, error=str(err or message))
        return ProviderError(message, kind=kind)

    def compute_planets(self, params: ChartCalculationParams) -> dict[str, Any]:
        url = f"{self.base_url}{PLANETS_PATH}"
        start = time.perf_counter()
        try:
            resp = self._client.post(url, json=params.to_provider_body())
        except httpx.TimeoutException as err:
            raise self._fail("timeout", "astrology provider timed out", err) from err
        except httpx.HTTPError as err:
            raise self._fail("transport", "astrology provider unreachable", err) from err
        finally:
            PROVIDER_LATENCY.labels(provider=self.name).observe(time.perf_counter() - start)

        if resp.is_error:
            raise self._fail(
                "status", f"Astrology API error: {resp.status_code} {resp.reason_phrase}"
            )
        try:
            payload = resp.json()
        except ValueError as err:
            raise self._fail("malformed", "astrology provider returned invalid JSON", err) from err
        try:
            return validate_payload(payload)
        except ProviderError as err:
            raise self._fail(err.kind, str(err)) from err

    def close(self) -> None:
        """Ferme le client HTTP sous-jacent."""
        self._client.close()
