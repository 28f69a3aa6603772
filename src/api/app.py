from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import analysis, api_keys
from config import settings

app = FastAPI(
    title=settings.app_name,
    description="Track brand visibility across LLM providers",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis.router, prefix="/api/v1/analysis", tags=["analysis"])
app.include_router(api_keys.router, prefix="/api/v1", tags=["api-keys"])

@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }

@app.get("/health")
async def health():
    return {"status": "healthy"}
