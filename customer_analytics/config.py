"""Runtime settings for the analytics engine.

Settings are plain pydantic models so they validate on construction.
:meth:`EngineSettings.from_env` reads ``CUSTOMER_ANALYTICS_*`` environment
variables, falling back to the defaults below.
"""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field

ENV_PREFIX = "CUSTOMER_ANALYTICS_"

DEFAULT_TOP_CUSTOMERS_LIMIT = 100
DEFAULT_RECOMMENDATION_LIMIT = 5
MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


class EngineSettings(BaseModel):
    """Tunable knobs for ingestion, snapshot assembly and the prediction client."""

    top_customers_limit: int = Field(
        default=DEFAULT_TOP_CUSTOMERS_LIMIT,
        ge=1,
        description="Number of customers kept in the top-by-monetary ranking",
    )
    recommendation_limit: int = Field(
        default=DEFAULT_RECOMMENDATION_LIMIT,
        ge=0,
        description="Maximum recommended products per customer",
    )
    max_input_bytes: int = Field(
        default=MAX_INPUT_BYTES,
        gt=0,
        description="Largest input file accepted by the loaders",
    )
    prediction_api_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the churn / next-purchase prediction service",
    )
    prediction_timeout_seconds: float = Field(default=10.0, gt=0)
    prediction_max_attempts: int = Field(default=3, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "EngineSettings":
        """Build settings from environment variables.

        Example: ``CUSTOMER_ANALYTICS_TOP_CUSTOMERS_LIMIT=50`` sets
        ``top_customers_limit``. Unknown variables are ignored; invalid values
        raise ``pydantic.ValidationError``.
        """
        environ = dict(os.environ) if environ is None else environ
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)
