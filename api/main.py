"""
FastAPI gateway for the AlphaCouncil A-share analysis workflow.

Endpoints:
  GET    /health                 - liveness and provider key status
  GET    /state                  - live run state
  POST   /analyze                - start a run (background)
  POST   /reset                  - back to Idle, keep configs
  PUT    /config/{role}          - replace one participant's config
  GET    /history                - past runs, newest first
  DELETE /history/{id}           - drop one record
  DELETE /history                - drop all records
  POST   /history/{id}/restore   - adopt a past run's results
  GET    /docs                   - Swagger UI (auto-generated)
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv
load_dotenv()

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api.schemas import AnalyzeAccepted, AnalyzeRequest, HealthResponse, StateResponse
from agents.orchestrator.session import CouncilSession, build_session
from libs.config import CouncilSettings
from libs.domain_models.workflow import AgentConfig, AgentRole, HistoryRecord
from libs.errors import HistoryRecordNotFound, WorkflowBusyError
from libs.log_config import setup_logging

logger = logging.getLogger(__name__)


def _key_status(env_var: str) -> str:
    return "configured" if os.getenv(env_var) else "operator_key"


def create_app(session: CouncilSession | None = None, settings: CouncilSettings | None = None) -> FastAPI:
    """Build the app. A session is created from the environment on first use unless one is given."""
    settings = settings or CouncilSettings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    app = FastAPI(
        title="AlphaCouncil",
        description=(
            "Multi-agent decision support for Shanghai/Shenzhen stocks. Five analysts, two "
            "research directors, two risk officers and a general manager review real-time "
            "market data in four stages. No trade execution."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.session = session

    def get_session(request: Request) -> CouncilSession:
        if request.app.state.session is None:
            request.app.state.session = build_session(settings)
        return request.app.state.session

    def state_response(s: CouncilSession) -> StateResponse:
        return StateResponse.from_state(s.state, s.restored_from_history)

    # ── Routes ───────────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health():
        """Liveness check: returns service status."""
        return HealthResponse(
            status="ok",
            version="0.1.0",
            services={
                "gemini": _key_status("GEMINI_API_KEY"),
                "deepseek": _key_status("DEEPSEEK_API_KEY"),
                "qwen": _key_status("QWEN_API_KEY"),
                "juhe": "configured" if os.getenv("JUHE_API_KEY") else "fallback_yfinance",
                "storage": "redis" if settings.redis_url else "file",
            },
        )

    @app.get("/state", response_model=StateResponse, tags=["Analysis"])
    async def get_state(request: Request):
        return state_response(get_session(request))

    @app.post("/analyze", response_model=AnalyzeAccepted, status_code=202, tags=["Analysis"])
    async def analyze(body: AnalyzeRequest, request: Request, background_tasks: BackgroundTasks):
        """
        Start a council run for one stock. Poll /state for progress.

        The run will:
        1. Validate the stock code
        2. Fetch the real-time quote (Juhe, or yfinance without a Juhe key)
        3. Run analysts → directors → risk officers → general manager
        """
        session = get_session(request)
        try:
            session.ensure_idle()
        except WorkflowBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))

        logger.info(f"Council run requested for {body.symbol!r}", extra={"symbol": body.symbol, "action": "analyze"})
        background_tasks.add_task(session.start_run, body.symbol, body.api_keys)
        return AnalyzeAccepted(symbol=body.symbol.strip())

    @app.post("/reset", response_model=StateResponse, tags=["Analysis"])
    async def reset(request: Request):
        session = get_session(request)
        session.reset()
        return state_response(session)

    @app.put("/config/{role}", response_model=StateResponse, tags=["Configuration"])
    async def update_config(role: AgentRole, config: AgentConfig, request: Request):
        session = get_session(request)
        session.update_config(role, config)
        return state_response(session)

    @app.get("/history", response_model=list[HistoryRecord], tags=["History"])
    async def list_history(request: Request):
        return get_session(request).history()

    @app.delete("/history/{record_id}", status_code=204, tags=["History"])
    async def delete_history(record_id: str, request: Request):
        get_session(request).delete_history(record_id)
        return Response(status_code=204)

    @app.delete("/history", status_code=204, tags=["History"])
    async def clear_history(request: Request):
        get_session(request).clear_history()
        return Response(status_code=204)

    @app.post("/history/{record_id}/restore", response_model=StateResponse, tags=["History"])
    async def restore_history(record_id: str, request: Request):
        session = get_session(request)
        try:
            session.restore_from_history(record_id)
        except HistoryRecordNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        return state_response(session)

    return app


app = create_app()


# ── Dev runner ───────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=True,
    )
