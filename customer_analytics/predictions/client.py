"""Client for the external churn / next-purchase prediction service.

The service owns the model; this module only shapes requests from scored
customers, sends them, and validates the replies. Failures are raised to the
caller as :class:`PredictionServiceError` and never touch an analytics
snapshot.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Literal

import structlog
from pybreaker import CircuitBreaker, CircuitBreakerError
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from customer_analytics.config import EngineSettings
from customer_analytics.foundation.rfm import ScoredCustomer
from customer_analytics.predictions.circuit_breakers import (
    PREDICTION_SERVICE,
    BreakerPolicy,
    breaker_for,
)

logger = structlog.get_logger(__name__)

HIGH_CHURN_THRESHOLD = 70.0
MEDIUM_CHURN_THRESHOLD = 40.0

#: (url, body, timeout_seconds) -> (status_code, response_body)
Transport = Callable[[str, bytes, float], tuple[int, bytes]]


class PredictionServiceError(RuntimeError):
    """The prediction service could not produce a prediction."""


class PredictionTransportError(PredictionServiceError):
    """Network failure or 5xx response; safe to retry."""


class PredictionRejectedError(PredictionServiceError):
    """The service rejected the request (4xx) or replied with an invalid body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PredictionServiceUnavailable(PredictionServiceError):
    """The circuit breaker is open; calls fail fast."""


class PredictionRequest(BaseModel):
    """Customer feature record sent to ``POST /predict``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_id: int = Field(alias="Customer_ID", gt=0)
    recency_days: float = Field(alias="Recency_Days", ge=0)
    frequency: float = Field(alias="Frequency", ge=1)
    monetary: float = Field(alias="Monetary", ge=0)
    avg_order_value: float = Field(default=0.0, alias="Avg_Order_Value", ge=0)
    total_items_sold: float = Field(default=0.0, alias="Total_Items_Sold", ge=0)
    attribution: str = Field(default="Unknown", alias="Attribution")
    customer_type: str = Field(default="unknown", alias="Customer_Type")

    @classmethod
    def from_scored_customer(cls, customer: ScoredCustomer) -> "PredictionRequest":
        """Build a request from a scored customer.

        Raises:
            pydantic.ValidationError: If the customer id is not a positive
                integer or a feature is out of range (e.g. frequency < 1)
        """
        summary = customer.customer
        return cls(
            customer_id=summary.customer_id,
            recency_days=customer.recency,
            frequency=summary.frequency,
            monetary=summary.monetary,
            avg_order_value=summary.avg_order_value,
            total_items_sold=summary.total_items_sold,
            attribution=summary.attribution,
            customer_type=summary.customer_type,
        )

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


class PredictionResult(BaseModel):
    """Reply from the prediction service."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_id: int = Field(alias="Customer_ID")
    pred_next_purchase_days: float = Field(alias="Pred_Next_Purchase_Days")
    churn_probability: float = Field(alias="Churn_Probability", ge=0, le=100)

    @property
    def risk_level(self) -> Literal["High", "Medium", "Low"]:
        if self.churn_probability >= HIGH_CHURN_THRESHOLD:
            return "High"
        if self.churn_probability >= MEDIUM_CHURN_THRESHOLD:
            return "Medium"
        return "Low"


def urllib_transport(url: str, body: bytes, timeout: float) -> tuple[int, bytes]:
    """POST ``body`` as JSON and return ``(status, response_body)``.

    HTTP error statuses are returned, not raised; network failures raise
    :class:`PredictionTransportError`.
    """
    request = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()
    except (urllib.error.URLError, TimeoutError, ConnectionError) as exc:
        raise PredictionTransportError(f"Prediction service unreachable: {exc}") from exc


def _error_detail(body: bytes) -> str | None:
    try:
        payload = json.loads(body or b"null")
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("detail"):
        return str(payload["detail"])
    return None


class PredictionClient:
    """Send customer feature records to the prediction service.

    Transient failures (network errors, 5xx) are retried with exponential
    backoff; repeated failures open a circuit breaker so later calls fail fast.

    Example:
        >>> client = PredictionClient(EngineSettings(prediction_api_url="http://svc"))  # doctest: +SKIP
        >>> result = client.predict_for_customer(snapshot.customers[0])  # doctest: +SKIP
        >>> result.risk_level  # doctest: +SKIP
        'Low'
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        transport: Transport | None = None,
        breaker: CircuitBreaker | None = None,
        backoff_multiplier: float = 1.0,
    ):
        self.settings = settings or EngineSettings()
        self.base_url = self.settings.prediction_api_url.rstrip("/")
        self._transport = transport or urllib_transport
        self._breaker = breaker or breaker_for(
            PREDICTION_SERVICE, BreakerPolicy(exclude=(PredictionRejectedError,))
        )
        self._backoff_multiplier = backoff_multiplier

    @property
    def predict_url(self) -> str:
        return f"{self.base_url}/predict"

    def _post_once(self, body: bytes) -> bytes:
        status, response_body = self._transport(
            self.predict_url, body, self.settings.prediction_timeout_seconds
        )
        if status >= 500:
            raise PredictionTransportError(f"Prediction service returned HTTP {status}")
        if status >= 400:
            detail = _error_detail(response_body)
            raise PredictionRejectedError(
                detail or f"HTTP error! status: {status}", status_code=status
            )
        return response_body

    def _post_with_retry(self, body: bytes) -> bytes:
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.prediction_max_attempts),
            wait=wait_exponential(multiplier=self._backoff_multiplier, min=0, max=10),
            retry=retry_if_exception_type(PredictionTransportError),
            reraise=True,
        )
        return retrying(self._post_once, body)

    def predict(self, request: PredictionRequest) -> PredictionResult:
        """Request a churn / next-purchase prediction for one customer.

        Raises:
            PredictionServiceUnavailable: If the circuit breaker is open
            PredictionTransportError: If every retry attempt failed
            PredictionRejectedError: On 4xx responses or malformed replies
        """
        body = json.dumps(request.to_payload()).encode("utf-8")
        logger.info("prediction_requested", customer_id=request.customer_id)
        try:
            response_body = self._breaker.call(self._post_with_retry, body)
        except CircuitBreakerError as exc:
            logger.warning("prediction_circuit_open", customer_id=request.customer_id)
            raise PredictionServiceUnavailable(
                "Prediction service circuit is open; try again later"
            ) from exc
        except RetryError as exc:  # pragma: no cover - reraise=True surfaces the cause
            raise PredictionTransportError(str(exc)) from exc

        try:
            result = PredictionResult.model_validate_json(response_body)
        except ValidationError as exc:
            raise PredictionRejectedError(
                f"Invalid prediction response: {exc.error_count()} validation error(s)"
            ) from exc

        logger.info(
            "prediction_received",
            customer_id=result.customer_id,
            churn_probability=result.churn_probability,
            risk_level=result.risk_level,
        )
        return result

    def predict_for_customer(self, customer: ScoredCustomer) -> PredictionResult:
        """Shape ``customer`` into a request and call :meth:`predict`."""
        return self.predict(PredictionRequest.from_scored_customer(customer))
