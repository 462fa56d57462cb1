import json
import logging
from datetime import datetime
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from app.unified_pipeline import UnifiedPipelineController
from core.config import CONFIG
from services.broadcaster import format_assignment_message
from services.container import BotServices, create_services
from services.reminders import ReminderService
from services.transport import InboundMessage, normalize_identity

logger = logging.getLogger(__name__)

app = FastAPI(title="Kinanti Assignment Bot API", version="1.0.0")


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global instances, created on startup
bot_services: Optional[BotServices] = None
pipeline: Optional[UnifiedPipelineController] = None


class StudentEntry(BaseModel):
    phone: str
    name: Optional[str] = None


class BroadcastRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    class_name: Optional[str] = Field(None, alias="className")
    student_list: List[Union[StudentEntry, str]] = Field(default_factory=list, alias="studentList")
    title: Optional[str] = None
    deadline: Optional[datetime] = None
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")

    def phones(self) -> List[str]:
        raw = [s.phone if isinstance(s, StudentEntry) else s for s in self.student_list]
        return [p for p in (normalize_identity(r) for r in raw) if p]


class ChatRequest(BaseModel):
    sender: str
    message: str = ""


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        self.active_connections.remove(websocket)

    async def send_personal_message(self, message: str, websocket: WebSocket):
        await websocket.send_text(message)


manager = ConnectionManager()


@app.on_event("startup")
async def startup_event():
    """Wire the services and the unified pipeline on server startup"""
    global bot_services, pipeline
    bot_services = create_services()
    pipeline = UnifiedPipelineController(bot_services)
    logger.info("🚀 %s ready", CONFIG['bot_name'])


def get_services() -> BotServices:
    if bot_services is None:
        raise HTTPException(status_code=503, detail="Bot services not initialized")
    return bot_services


def get_pipeline() -> UnifiedPipelineController:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


def verify_token(authorization: Optional[str] = Header(None)):
    """Bearer check, only when a BOT_SECRET is configured."""
    secret = CONFIG.get('bot_secret')
    if not secret:
        return
    if authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/")
async def root():
    return {
        "message": "Kinanti Assignment Bot API",
        "status": "running",
        "version": "1.0.0",
        "features": [
            "Rule-based Intent Classification",
            "Slot-filling Dialog Manager",
            "Assignment Wizards",
            "Throttled Broadcast",
            "Excel Recap",
            "Scheduled Reminders",
        ],
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "pipeline_ready": pipeline is not None,
    }


@app.post("/broadcast", dependencies=[Depends(verify_token)])
async def broadcast_endpoint(request: BroadcastRequest, services: BotServices = Depends(get_services)):
    """Send the new-assignment announcement to a list of students."""
    phones = request.phones()
    if not phones:
        raise HTTPException(status_code=400, detail="Student list is empty.")
    if not request.code or not request.class_name:
        raise HTTPException(status_code=400, detail="Code and class are required.")

    logger.info("[Broadcast] %s | %s -> %d students", request.class_name, request.code, len(phones))
    try:
        text = format_assignment_message(request.code, request.title, request.deadline,
                                         request.pdf_url, tz_name=services.tz_name)
        result = await services.broadcaster.send_same(phones, text)
    except Exception as e:
        logger.error("Broadcast error", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, **result.to_dict()}


REMINDER_JOBS = {
    "morning": "morning_broadcast",
    "evening": "evening_broadcast",
    "deadline-tomorrow": "deadline_tomorrow_reminder",
}


@app.post("/reminders/{job}", dependencies=[Depends(verify_token)])
async def reminder_endpoint(job: str, services: BotServices = Depends(get_services)):
    """Hook for an external scheduler (cron) to fire one reminder run."""
    if job not in REMINDER_JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown reminder job: {job}")
    reminders = ReminderService(services.store, services.broadcaster, tz_name=services.tz_name)
    try:
        result = await getattr(reminders, REMINDER_JOBS[job])()
    except Exception as e:
        logger.error("Reminder job %s failed", job, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "job": job, **result.to_dict()}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Local chat surface: each JSON frame {sender, message} is one inbound message."""
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_personal_message(
                    json.dumps({"type": "error", "message": "Invalid message format. Please send valid JSON."}),
                    websocket)
                continue
            replies = await get_pipeline().handle_message(
                InboundMessage(sender=str(frame.get("sender", "")), text=str(frame.get("message", ""))))
            for reply in replies:
                await manager.send_personal_message(json.dumps({"type": "answer", "message": reply}), websocket)
    except WebSocketDisconnect:
        manager.disconnect(websocket)


# REST API endpoint for testing
@app.post("/chat")
async def chat_endpoint(request: ChatRequest, controller: UnifiedPipelineController = Depends(get_pipeline)):
    """REST endpoint for chat (alternative to WebSocket)"""
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Empty message")
    replies = await controller.handle_message(InboundMessage(sender=request.sender, text=request.message))
    return {"replies": replies, "status": "success"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=CONFIG['bot_port'])
