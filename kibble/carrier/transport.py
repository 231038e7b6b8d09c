# kibble/carrier/transport.py
"""
Nova Poshta JSON API transport.

Every carrier operation (address lookup, counterparty registration, waybill
creation, tracking) is the same POST call:

    {"apiKey": ..., "modelName": ..., "calledMethod": ..., "methodProperties": {...}}

answered with the envelope:

    {"success": bool, "data": [...], "errors": [...], "warnings": [...], "info": {...}}

This module owns that call shape; the directory and waybill clients only
choose model/method names and interpret `data`.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import httpx

from kibble.core.config import get_settings

logger = logging.getLogger(__name__)


class CarrierError(Exception):
    """
    Raised when a carrier call fails: transport error, non-2xx status,
    `success: false`, or an empty result where one is required.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {', '.join(self.errors)}"
        super().__init__(message)


class NovaPoshtaTransport:
    """
    Thin wrapper around the single carrier endpoint.

    The underlying httpx.Client can be injected (tests pass one backed by
    httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.http = http_client or httpx.Client(timeout=timeout)

    def call(
        self,
        model_name: str,
        called_method: str,
        method_properties: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Perform one carrier call and return the `data` list.

        Raises:
            CarrierError: on transport failure or `success: false`.
        """
        body = {
            "apiKey": self.api_key,
            "modelName": model_name,
            "calledMethod": called_method,
            "methodProperties": method_properties or {},
        }
        logger.debug("Nova Poshta call %s.%s", model_name, called_method)

        try:
            response = self.http.post(self.base_url, json=body)
            response.raise_for_status()
            envelope = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Nova Poshta %s.%s transport error: %s",
                model_name,
                called_method,
                exc,
            )
            raise CarrierError(f"{model_name}.{called_method} request failed") from exc

        if not envelope.get("success"):
            errors = envelope.get("errors") or []
            logger.warning(
                "Nova Poshta %s.%s rejected: %s", model_name, called_method, errors
            )
            raise CarrierError(f"{model_name}.{called_method} failed", errors)

        return envelope.get("data") or []

    def call_first(
        self,
        model_name: str,
        called_method: str,
        method_properties: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Like call(), but the response must contain at least one record.
        """
        data = self.call(model_name, called_method, method_properties)
        if not data:
            raise CarrierError(f"{model_name}.{called_method} returned no data")
        return data[0]

    def close(self) -> None:
        self.http.close()


@lru_cache
def get_transport() -> NovaPoshtaTransport:
    """
    Shared transport configured from settings.
    """
    settings = get_settings()
    return NovaPoshtaTransport(
        api_key=settings.NOVA_POSHTA_API_KEY,
        base_url=settings.NOVA_POSHTA_API_URL,
        timeout=settings.NOVA_POSHTA_TIMEOUT,
    )
