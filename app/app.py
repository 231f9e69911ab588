# Main script to run the event calendar api, startup scripts, start the different routers

import logging
import bootstrap
import store
from fastapi import FastAPI
from routers import series, events

# Initialize logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# With the MySQL backend, make sure the documents table exists before serving
if store.STORE_BACKEND == "mysql":
    bootstrap.setup_database()

# Initialize FastAPI app
app = FastAPI(title="EventCalendar-API", version="0.1.0")

# Include routers
app.include_router(series.router, prefix="/series", tags=["series"])
app.include_router(events.router, prefix="/events", tags=["events"])

# Health check endpoint
@app.get("/health")
async def health():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
