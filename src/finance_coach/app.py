from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .db import init_db
from .logging_config import configure_logging
from .routes import close_managers, router

# Ensure the database schema exists even when lifespan hooks are not triggered (e.g. in tests).
init_db()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield
    close_managers()


app = FastAPI(title="Finance Coach", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    configure_logging()
    uvicorn.run("finance_coach.app:app", host="127.0.0.1", port=8000, reload=True)


if __name__ == "__main__":
    main()
