import asyncio
from typing import Dict, List, Optional

import pytest

from chatpilot.activity_log import ActivityLog
from chatpilot.apps import APP_PROFILES
from chatpilot.input_driver import InputDriver
from chatpilot.models import ConversationVerdict, OcrSnapshot
from chatpilot.monitor import ChatMonitor
from chatpilot.responders.base_responder import BaseResponder


class FakePyAutoGui:
    """Records pyautogui calls instead of moving the real pointer."""

    def __init__(self, fail_on: Optional[str] = None):
        self.calls: List[tuple] = []
        self.fail_on = fail_on

    def _record(self, name, *args):
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")
        self.calls.append((name,) + args)

    def moveTo(self, x, y):
        self._record("moveTo", x, y)

    def click(self, button="left"):
        self._record("click", button)

    def write(self, text):
        self._record("write", text)

    def press(self, key):
        self._record("press", key)

    def typed(self) -> str:
        return "".join(c[1] for c in self.calls if c[0] == "write")

    def presses(self) -> int:
        return sum(1 for c in self.calls if c[0] == "press")


class FakeOcrSource:
    """Serves queued OCR texts; repeats the last one once the queue runs dry."""

    def __init__(self, texts=None):
        self.texts = list(texts or [])
        self.calls = 0
        self._last = None

    async def fetch(self, profile=None, limit=1):
        self.calls += 1
        item = self.texts.pop(0) if self.texts else self._last
        self._last = item
        if isinstance(item, Exception):
            raise item
        if item is None:
            return None
        return OcrSnapshot(text=item, timestamp="2024-01-01T00:00:00Z")

    async def health(self):
        return "healthy"


class FakeResponder(BaseResponder):
    """Responder with canned verdicts and replies that records every call."""

    name = "fake"

    def __init__(self, verdict: Optional[ConversationVerdict] = None, reply: str = "Doing great, you?",
                 greeting: str = "Hey! 👋", analysis_gate: Optional[asyncio.Event] = None):
        super().__init__(app="WhatsApp")
        self.verdict = verdict
        self.reply = reply
        self.greeting = greeting
        self.analysis_gate = analysis_gate
        self.analyze_calls: List[Dict] = []
        self.reply_calls: List[Dict] = []
        self.greeting_calls: List[Dict] = []

    async def list_models(self):
        return ["fake-model"]

    async def generate(self, prompt, temperature=0.3, max_tokens=1000):
        return f"echo: {prompt}"

    async def chat(self, messages, temperature=0.3, max_tokens=1000):
        return ""

    async def analyze_conversation(self, previous_text, current_text, my_username,
                                   last_own_response="", recent_history="", context_instructions=""):
        self.analyze_calls.append({
            "previous": previous_text,
            "current": current_text,
            "username": my_username,
            "last_own_response": last_own_response,
            "recent_history": recent_history,
            "context_instructions": context_instructions,
        })
        if self.analysis_gate is not None:
            await self.analysis_gate.wait()
        if isinstance(self.verdict, Exception):
            raise self.verdict
        return self.verdict or ConversationVerdict(False, False, "", "unknown", "nothing new")

    async def generate_reply(self, incoming_message, history=None, ocr_context=None):
        self.reply_calls.append({"message": incoming_message, "history": list(history or []), "ocr": ocr_context})
        return self.reply

    async def generate_greeting(self, ocr_text, greeting_prompt=None, fallback="Hi"):
        self.greeting_calls.append({"ocr": ocr_text, "prompt": greeting_prompt, "fallback": fallback})
        return self.greeting


@pytest.fixture
def pyautogui_fake():
    return FakePyAutoGui()


@pytest.fixture
def make_monitor(pyautogui_fake):
    def factory(responder=None, ocr=None, app="whatsapp", **overrides):
        log = ActivityLog(limit=50)
        driver = InputDriver(
            backend=pyautogui_fake,
            chunk_delay=0,
            send_cooldown=0,
            settle_delays=(),
            log=log.add,
        )
        options = dict(
            username="Me",
            poll_interval=0.01,
            busy_backoff=0.01,
            reply_cooldown=0,
            startup_delay=0,
            greeting_delay=-1,
            greeting_cooldown=0,
            launcher=None,
        )
        options.update(overrides)
        return ChatMonitor(
            responder=responder or FakeResponder(),
            ocr_source=ocr or FakeOcrSource(),
            driver=driver,
            app=APP_PROFILES[app],
            log=log,
            **options,
        )
    return factory


def log_messages(monitor: ChatMonitor) -> List[str]:
    return [e.message for e in monitor.log.entries()]
