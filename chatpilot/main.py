"""FastAPI control server for chatpilot."""

from fastapi import FastAPI, Response
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional
import asyncio
import json

from chatpilot.activity_log import ActivityLog
from chatpilot.apps import AppProfile, get_app_profile
from chatpilot.config import Config
from chatpilot.input_driver import InputDriver
from chatpilot.launcher import open_app
from chatpilot.monitor import ChatMonitor
from chatpilot.ocr_source import OcrSource
from chatpilot.responders import BaseResponder, create_responder

app = FastAPI(title="chatpilot")

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for problem in Config.validate():
    print(f"[CONFIG] Missing or invalid setting: {problem}")

# Global state
activity_log = ActivityLog(Config.LOG_LIMIT)
ocr_source = OcrSource()
driver = InputDriver(log=activity_log.add)
monitor: Optional[ChatMonitor] = None

# Initialize responder based on configuration
responder: Optional[BaseResponder]
try:
    responder = create_responder(Config.AI_PROVIDER)
    print(f"AI provider initialized: {Config.AI_PROVIDER}")
except ValueError as e:
    print(f"ERROR: {e}")
    print("Falling back to Ollama...")
    responder = create_responder("ollama")
except Exception as e:
    print(f"ERROR initializing AI provider: {e}")
    print("Please check your configuration and API keys.")
    responder = None


# Request models
class StartRequest(BaseModel):
    app: Optional[str] = None
    username: Optional[str] = None


class GenerateRequest(BaseModel):
    prompt: str


def build_monitor(profile: AppProfile, username: Optional[str] = None) -> ChatMonitor:
    """Create a fresh monitoring session for ``profile``.

    Each session gets its own responder so a busy call left over from a
    stopped session never blocks the next one.
    """
    return ChatMonitor(
        responder=create_responder(responder.name, app=profile.label),
        ocr_source=ocr_source,
        driver=driver,
        app=profile,
        log=activity_log,
        username=username or Config.MY_USERNAME,
    )


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon to prevent 404 errors."""
    return Response(content="", media_type="image/x-icon")


@app.get("/health")
async def health():
    """Screenpipe health and whether a session is running."""
    return {
        "status": await ocr_source.health(),
        "monitoring": monitor is not None and monitor.is_active,
    }


@app.post("/monitor/start")
async def monitor_start(request: Optional[StartRequest] = None):
    """Start a new monitoring session with fresh state."""
    global monitor
    request = request or StartRequest()

    if monitor is not None and monitor.is_active:
        return {"error": "Monitor already running"}
    if responder is None:
        return {"error": "AI provider not initialized. Please check your configuration."}

    try:
        profile = get_app_profile(request.app or Config.TARGET_APP)
    except ValueError as e:
        return {"error": str(e)}

    monitor = build_monitor(profile, request.username)
    monitor.start()
    return {"status": "started", **monitor.status()}


@app.post("/monitor/stop")
async def monitor_stop():
    """Stop the running session."""
    if monitor is None or not monitor.is_active:
        return {"error": "Monitor not running"}
    monitor.stop()
    return {"status": "stopped"}


@app.get("/monitor/status")
async def monitor_status():
    if monitor is None:
        return {"active": False}
    return monitor.status()


@app.get("/logs")
async def logs():
    return {"logs": [e.to_dict() for e in activity_log.entries()]}


@app.get("/logs/stream")
async def logs_stream():
    """Stream activity log entries via Server-Sent Events."""

    async def event_generator():
        seq = activity_log.seq
        while True:
            try:
                entries = activity_log.since(seq)
                seq = activity_log.seq
                if entries:
                    for entry in entries:
                        yield f"data: {json.dumps(entry.to_dict())}\n\n"
                else:
                    # Send heartbeat to keep connection alive
                    yield ": heartbeat\n\n"

                await asyncio.sleep(1.0)
            except asyncio.CancelledError:
                break
            except Exception as e:
                print(f"Error in log stream: {e}")
                break

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        }
    )


@app.get("/chat/history")
async def chat_history():
    """Chat history of the current (or last) session."""
    if monitor is None:
        return {"history": []}
    return {"history": [m.to_dict() for m in monitor.state.chat_history]}


@app.get("/models")
async def models():
    """Models offered by the configured AI provider."""
    if responder is None:
        return {"models": [], "error": "AI provider not initialized"}
    try:
        return {"provider": responder.name, "models": await responder.list_models()}
    except Exception as e:
        print(f"[MODELS] Failed to fetch models: {e}")
        return {"provider": responder.name, "models": [], "error": str(e)}


@app.post("/ai/generate")
async def ai_generate(request: GenerateRequest):
    """Send a raw prompt to the AI provider."""
    if responder is None:
        return {"error": "AI provider not initialized. Please check your configuration."}
    try:
        return {"response": await responder.generate(request.prompt)}
    except Exception as e:
        print(f"[GENERATE] Error: {e}")
        return {"error": str(e)}


@app.post("/apps/{app_key}/open")
async def apps_open(app_key: str):
    """Launch WhatsApp or Discord through its protocol handler."""
    try:
        profile = get_app_profile(app_key)
    except ValueError as e:
        return {"success": False, "error": str(e)}
    activity_log.add(f"Attempting to launch {profile.label}...")
    result = open_app(profile)
    if not result.get("success"):
        activity_log.add(f"Error launching {profile.label}: {result.get('error')}")
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=Config.HOST, port=Config.PORT)
