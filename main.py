import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import uvicorn

from database import check_connection
from routers import payments_router, purchase_requests_router
from services.errors import PurchaseWorkflowError

# Load .env
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("estate_purchase")

# App instance
app = FastAPI(title="Property Purchase API")

# CORS
origins = [origin for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors -> JSON envelope
@app.exception_handler(PurchaseWorkflowError)
async def purchase_workflow_error_handler(request: Request, exc: PurchaseWorkflowError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "loc": err.get("loc"),
            "msg": str(err.get("msg")),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "detail": "Request payload failed validation",
            "errors": errors,
        },
    )


app.include_router(purchase_requests_router)
app.include_router(payments_router)


@app.get("/api/health")
def health():
    return {"status": "ok", "database": check_connection()}


# 404 Fallback Middleware
@app.middleware("http")
async def not_found_middleware(request: Request, call_next):
    try:
        response = await call_next(request)
        # Only unmatched routes; a NotFoundError from a service keeps its body
        if response.status_code == 404 and "endpoint" not in request.scope:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return response
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

if __name__ == "__main__":
    port = int(os.getenv("PORT", 10000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
