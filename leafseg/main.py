import logging

from fastapi import FastAPI

from leafseg import config
from leafseg.models.loaders import ModelState
from leafseg.routers import infer
from leafseg.routers.debug import router as debug_router
from leafseg.schemas import HealthResponse

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="leaf-severity-infer-service", version="0.1.0")


@app.get("/health", response_model=HealthResponse)
def health():
    rt = infer.pipe.runtime
    models = rt.status()
    if not rt.loaded:
        status = "loading"
    elif all(m["state"] == ModelState.READY.value for m in models.values()):
        status = "ok"
    else:
        status = "degraded"
    return {"status": status, "models": models}


@app.on_event("startup")
async def _load_models():
    infer.pipe.runtime.start()


app.include_router(infer.router)
app.include_router(debug_router)
