"""FastAPI entry point for the crisis risk analysis service."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from routes import crisis_routes

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

app = FastAPI(title="Recovery Support - Crisis Risk Analysis", version="0.1.0")
app.include_router(crisis_routes.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Basic readiness probe for infrastructure monitors."""
    return {"status": "ok"}


def main() -> None:
    """Run a development server when executed as a module."""

    port = int(os.getenv("PORT", "8000"))

    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=os.getenv("UVICORN_RELOAD", "true").lower() == "true")


if __name__ == "__main__":
    main()
