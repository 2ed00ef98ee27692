"""FastAPI backend for sparseba."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sparseba import __version__

from .routers import bundle_adjust

app = FastAPI(
    title="sparseba Backend",
    description="Sparse bundle adjustment API",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],  # Frontend dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(bundle_adjust.router)


@app.get("/healthz")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
async def get_version() -> dict[str, str]:
    """Get version information."""
    return {"version": __version__}


if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Run sparseba backend server")
    parser.add_argument("--port", type=int, default=8000, help="Port to run server on")
    parser.add_argument("--reload", action="store_true", help="Reload on source changes")
    args = parser.parse_args()

    uvicorn.run("backend.main:app", host="127.0.0.1", port=args.port, reload=args.reload)
