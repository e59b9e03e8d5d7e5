"""FastAPI app served by the Lambda function behind the API gateway."""

from __future__ import annotations

import os

from fastapi import FastAPI
from pydantic import BaseModel, Field

app = FastAPI(
    title="Pipelines Webinar API",
    description="Endpoint for a simple Lambda-powered web service",
    version="0.1.0",
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HelloResponse(BaseModel):
    message: str
    version: str = Field(..., description="Lambda version serving the request")


class HealthResponse(BaseModel):
    status: str


def _function_version() -> str:
    # Set by the Lambda runtime; "$LATEST" when invoked without an alias.
    return os.environ.get("AWS_LAMBDA_FUNCTION_VERSION", "$LATEST")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/", response_model=HelloResponse)
def hello() -> HelloResponse:
    """Greeting, tagged with the version the alias routed the request to."""
    return HelloResponse(message="Hello from a Lambda function", version=_function_version())


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")
