"""
Model catalog fetch from the OpenRouter /models endpoint.
"""

from __future__ import annotations

import logging
import threading

import httpx

from openrouter_agent.core.errors import NetworkFailure, OperationCancelled
from openrouter_agent.models.catalog import ModelCatalog, ModelDescriptor

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
MODELS_PATH = "/models"
DEFAULT_TIMEOUT = 30.0

# Attribution headers recommended by OpenRouter
ATTRIBUTION_HEADERS = {
    "HTTP-Referer": "http://localhost",
    "X-Title": "openrouter-agent",
}


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("Model catalog fetch cancelled")


def fetch_catalog(
    client: httpx.Client | None = None,
    cancel: threading.Event | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ModelCatalog:
    """
    Fetch and normalize the OpenRouter model catalog.

    Args:
        client: Optional preconfigured httpx client (base URL is ignored)
        cancel: Optional cancellation signal, checked around the request
        timeout: Request timeout in seconds when no client is given

    Raises:
        NetworkFailure: unreachable endpoint, non-2xx status or undecodable body
        OperationCancelled: ``cancel`` was set
    """
    _check_cancel(cancel)
    url = OPENROUTER_BASE_URL + MODELS_PATH

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout)

    try:
        response = client.get(url, headers=ATTRIBUTION_HEADERS)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise NetworkFailure(
            f"Failed to fetch models: {status} {e.response.reason_phrase}",
            status_code=status,
        ) from e
    except httpx.RequestError as e:
        raise NetworkFailure(f"Could not reach {url}: {e}") from e
    except ValueError as e:
        raise NetworkFailure(f"Invalid response from {url}: {e}") from e
    finally:
        if owns_client:
            client.close()

    _check_cancel(cancel)
    catalog = ModelCatalog.from_payload(payload)
    logger.debug("Fetched %d models from OpenRouter", len(catalog))
    return catalog


def fetch_models(
    client: httpx.Client | None = None,
    cancel: threading.Event | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[ModelDescriptor]:
    """Like fetch_catalog(), as a plain list."""
    return list(fetch_catalog(client=client, cancel=cancel, timeout=timeout))
