"""Outbound HTTP helpers shared by the service adapters.

Timeouts come from the environment; every transport-level failure leaves
this module as a ``TransportError`` naming the service that failed.
"""

import os

import httpx

from storefront.errors import TransportError

DEFAULT_TIMEOUT_SECONDS = 5.0


def service_timeout() -> float:
    return float(os.environ.get("SERVICE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))


def build_client(base_url: str, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=service_timeout(), transport=transport)


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    service: str,
    params: dict | None = None,
    allow_missing: bool = False,
):
    """GET ``url`` and decode the JSON body.

    Returns None for a 404 when ``allow_missing`` is set.
    """
    try:
        response = await client.get(url, params=params)
        if allow_missing and response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()
    except httpx.TimeoutException as exc:
        raise TransportError(f"{service} service timed out", service=service) from exc
    except httpx.HTTPStatusError as exc:
        raise TransportError(
            f"{service} service returned HTTP {exc.response.status_code}",
            service=service,
        ) from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"{service} service request failed: {exc}", service=service) from exc
    except ValueError as exc:
        raise TransportError(f"{service} service sent an unreadable response", service=service) from exc
