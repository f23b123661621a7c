"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chartql.api.routers import charts, schema
from chartql.core.errors import ChartError

app = FastAPI(
    title="chartql",
    version="0.1.0",
    description="Declarative chart configurations compiled to parameterized SQL",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(charts.router, prefix="/charts", tags=["Charts"])
app.include_router(schema.router, prefix="/schema", tags=["Schema"])


@app.exception_handler(ChartError)
def chart_error_handler(request: Request, exc: ChartError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.to_dict()})


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    from chartql.core.config import get_settings

    uvicorn.run("chartql.api.main:app", host="0.0.0.0", port=get_settings().api_port)
