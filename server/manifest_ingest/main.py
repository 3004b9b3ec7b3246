from fastapi import FastAPI
import logging

from manifest_ingest import __version__, config
from manifest_ingest.api import shipment_extract

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Manifest Ingest", version=__version__)

app.include_router(shipment_extract.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for Docker and monitoring."""
    return {"status": "healthy", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("manifest_ingest.main:app", host="0.0.0.0", port=8000)
