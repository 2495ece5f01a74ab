# marketcore/main.py
import uvicorn

from marketcore.api import create_app
from marketcore.data.database import Base, engine, init_db
from marketcore.utils.logging import get_logger

logger = get_logger(__name__)

init_db()
logger.info(f"Database ready, tables: {sorted(Base.metadata.tables.keys())}")

app = create_app()

if __name__ == "__main__":
    logger.info(f"Starting on {engine.url.render_as_string(hide_password=True)}")
    uvicorn.run(app, host="0.0.0.0", port=8000)
