from fastapi import FastAPI

from squirrel_away.api.routes import router as states_router
from squirrel_away.logging_config import configure_logging


configure_logging()

app = FastAPI(title="squirrel-away")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(states_router)
