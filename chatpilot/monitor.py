"""Chat monitoring loop: OCR polling, change analysis, replies and the opening greeting."""

import asyncio
from typing import Any, Callable, Coroutine, Dict, Optional, Set

from chatpilot.activity_log import ActivityLog
from chatpilot.apps import (
    AppProfile,
    DiscordContext,
    context_instructions,
    describe_context,
    detect_discord_context,
    fallback_greeting,
    greeting_prompt,
)
from chatpilot.input_driver import InputDriver
from chatpilot.launcher import open_app
from chatpilot.ocr_source import OcrSource
from chatpilot.prompt import render_history
from chatpilot.responders import BaseResponder
from chatpilot.state import SessionState


def _preview(text: str, limit: int = 30) -> str:
    text = text or ""
    return text[:limit] + ("..." if len(text) > limit else "")


def is_self_echo(message: str, last_own_response: str) -> bool:
    """True when a "new" message is really our own last reply read back by OCR."""
    return bool(last_own_response) and last_own_response in (message or "")


class ChatMonitor:
    """One monitoring session for one chat application.

    All state lives in ``self.state`` and is never shared with another
    session; start a new ``ChatMonitor`` to monitor again from scratch.
    """

    def __init__(
        self,
        responder: BaseResponder,
        ocr_source: OcrSource,
        driver: InputDriver,
        app: AppProfile,
        log: Optional[ActivityLog] = None,
        username: str = None,
        poll_interval: float = None,
        busy_backoff: float = None,
        reply_cooldown: float = None,
        startup_delay: float = None,
        greeting_delay: Optional[float] = None,
        greeting_cooldown: float = None,
        analysis_history: int = None,
        reply_history: int = None,
        launcher: Optional[Callable[[AppProfile], Dict[str, Any]]] = open_app,
    ):
        from chatpilot.config import Config

        def pick(value, default):
            return default if value is None else value

        self.responder = responder
        self.ocr = ocr_source
        self.driver = driver
        self.app = app
        self.log = log or ActivityLog(Config.LOG_LIMIT)
        self.username = username or Config.MY_USERNAME
        self.poll_interval = pick(poll_interval, Config.POLL_INTERVAL_SECONDS)
        self.busy_backoff = pick(busy_backoff, Config.BUSY_BACKOFF_SECONDS)
        self.reply_cooldown = pick(reply_cooldown, Config.REPLY_COOLDOWN_SECONDS)
        self.startup_delay = pick(startup_delay, Config.STARTUP_DELAY_SECONDS)
        self.greeting_delay = pick(greeting_delay, Config.GREETING_DELAY_SECONDS)
        self.greeting_cooldown = pick(greeting_cooldown, Config.GREETING_COOLDOWN_SECONDS)
        self.analysis_history = pick(analysis_history, Config.ANALYSIS_HISTORY_MESSAGES)
        self.reply_history = pick(reply_history, Config.REPLY_HISTORY_MESSAGES)
        self._launcher = launcher

        self.state = SessionState()
        self.discord_context: Optional[DiscordContext] = None
        self._run_task: Optional[asyncio.Task] = None
        self._greeting_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_discord(self) -> bool:
        return self.app.key == "discord"

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Open the chat app and begin polling. Must be called inside a running loop."""
        if self.state.is_active:
            return False

        if self._launcher is not None:
            self.log.add(f"Opening {self.app.label}...")
            result = self._launcher(self.app)
            if result.get("success"):
                self.log.add(f"{self.app.label} launch request sent successfully")
            else:
                self.log.add(f"Error launching {self.app.label}: {result.get('error')}")

        self.state.is_active = True
        self.log.add(f"Starting monitoring for {self.app.label} in {self.startup_delay:g} seconds...")
        self._run_task = asyncio.create_task(self._run())
        return True

    def stop(self):
        """Stop polling and cancel pending timers.

        Analysis or reply calls already on the wire are left to finish; they
        see the session is inactive and drop their result.
        """
        self.state.is_active = False
        for task in (self._run_task, self._greeting_task):
            if task is not None and not task.done():
                task.cancel()
        self._run_task = None
        self._greeting_task = None
        self.log.add(f"Stopped monitoring {self.app.label}")

    async def drain(self):
        """Wait for in-flight analysis/reply/greeting work to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self):
        try:
            if self.startup_delay > 0:
                await asyncio.sleep(self.startup_delay)
            if not self.state.is_active:
                return

            self.log.add("Now beginning chat monitoring")
            self.arm_greeting()

            while self.state.is_active:
                delay = await self.poll_once()
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            print("[MONITOR] Polling task cancelled")
            raise

    # ------------------------------------------------------------------
    # Polling and change detection
    # ------------------------------------------------------------------

    async def poll_once(self) -> float:
        """Run one poll cycle and return the delay before the next one."""
        if self.state.processing_in_flight:
            self.log.add("Waiting for current message processing to complete...")
            return self.busy_backoff

        try:
            snapshot = await self.ocr.fetch(self.app)
        except Exception as e:
            print(f"[MONITOR] OCR error: {type(e).__name__}: {e}")
            self.log.add(f"OCR error: {e}")
            return self.poll_interval

        if not self.state.is_active:
            return self.poll_interval

        if snapshot is None or not snapshot.text:
            self.log.add("No OCR data available")
            return self.poll_interval

        self.handle_text(snapshot.text)
        return self.poll_interval

    def handle_text(self, text: str) -> Optional[asyncio.Task]:
        """Feed fresh OCR text through change detection.

        Starts (and returns) an analysis task when the text changed against an
        existing baseline; otherwise returns None.
        """
        state = self.state
        if not text or state.processing_in_flight or not state.is_active:
            return None

        had_baseline = bool(state.last_ocr_text)
        previous = state.observe(text)

        if self.is_discord:
            self.discord_context = detect_discord_context(state.last_ocr_text)

        if previous is None:
            if not had_baseline:
                self.log.add(f"Established baseline OCR ({len(text)} chars)")
            return None

        where = ""
        if self.is_discord and self.discord_context is not None:
            ctx = self.discord_context
            if ctx.channel_name:
                where = f" in channel #{ctx.channel_name}"
            elif ctx.username:
                where = f" in DM with {ctx.username}"
        self.log.add(f"New {self.app.label} content detected{where} ({len(text)} chars)")

        state.processing_in_flight = True
        return self._spawn(self._process_change(previous, text))

    # ------------------------------------------------------------------
    # Analysis and reply
    # ------------------------------------------------------------------

    async def _process_change(self, previous_text: str, current_text: str):
        state = self.state
        try:
            self.log.add(f"Analyzing {self.app.label} conversation changes with AI...")
            last_response = state.last_ai_response
            recent = render_history(state.recent_history(self.analysis_history))
            instructions = context_instructions(self.discord_context) if self.is_discord else ""

            verdict = await self.responder.analyze_conversation(
                previous_text,
                current_text,
                self.username,
                last_response,
                recent,
                instructions,
            )

            if not state.is_active:
                self.log.add("Monitoring stopped, discarding analysis result")
                return

            if not (verdict.new_message_detected and verdict.should_reply):
                if verdict.new_message_detected:
                    self.log.add(f"Message detected but AI decided not to reply: {verdict.reasoning}")
                else:
                    self.log.add("No new messages requiring response")
                return

            origin = describe_context(self.discord_context, verdict.sender) if self.is_discord else ""
            origin = origin or f"from {verdict.sender or 'someone'}"
            self.log.add(f'AI detected new message {origin}: "{_preview(verdict.message)}"')

            if is_self_echo(verdict.message, last_response):
                self.log.add("Detected message appears to be our own response, skipping")
                return

            message = verdict.message
            state.last_message = message
            state.message_history.append(message)
            state.add_message("user", message)

            # A real conversation started, the opening greeting is no longer wanted
            if self._greeting_task is not None and not self._greeting_task.done():
                self._greeting_task.cancel()

            await self._reply(message)
        except Exception as e:
            print(f"[MONITOR] Error in conversation analysis: {type(e).__name__}: {e}")
            self.log.add(f"Analysis error: {e}")
        finally:
            state.processing_in_flight = False

    async def _reply(self, message: str):
        state = self.state
        self.log.add("Processing message for response")

        response = await self.responder.generate_reply(
            message,
            state.recent_history(self.reply_history),
            state.last_ocr_text,
        )

        if not state.is_active:
            self.log.add("Monitoring stopped, not sending response")
            return

        # Remember what we said so OCR reading it back is not taken as new
        state.last_ai_response = response
        state.add_message("assistant", response)
        self.log.add(f'Response: "{_preview(response)}"')

        if not await self.driver.send(response, self.app):
            self.log.add("Response was not sent")
            return
        state.message_history.append(f"{self.username}: {response}")

        if self.reply_cooldown > 0:
            self.log.add(f"Adding {self.reply_cooldown:g}-second cooldown before resuming monitoring")
            await asyncio.sleep(self.reply_cooldown)

    # ------------------------------------------------------------------
    # Opening greeting
    # ------------------------------------------------------------------

    def arm_greeting(self):
        """Schedule the one-shot opening greeting for this session."""
        if self.greeting_delay is None or self.greeting_delay < 0:
            return
        if self._greeting_task is not None and not self._greeting_task.done():
            self._greeting_task.cancel()
        self._greeting_task = asyncio.create_task(self._greeting_timer())

    async def _greeting_timer(self):
        await asyncio.sleep(self.greeting_delay)
        if self.state.is_active:
            self._spawn(self.fire_greeting())

    async def fire_greeting(self) -> bool:
        """Send the opening greeting, at most once per session."""
        state = self.state
        if not state.is_active or state.greeting_sent or state.processing_in_flight:
            return False

        ctx = detect_discord_context(state.last_ocr_text) if self.is_discord else None
        target = self.app.label
        if ctx is not None:
            if ctx.username and ctx.is_dm:
                target = f"Discord DM with {ctx.username}"
            elif ctx.channel_name:
                target = f"Discord channel #{ctx.channel_name}"
        self.log.add(f"No conversation detected. Sending initial greeting to {target}...")

        state.greeting_sent = True
        state.processing_in_flight = True
        try:
            fallback = fallback_greeting(self.app, ctx)
            greeting = await self.responder.generate_greeting(
                state.last_ocr_text,
                greeting_prompt(ctx) if self.is_discord else None,
                fallback=fallback,
            )
            if not greeting or not greeting.strip():
                greeting = fallback

            if not state.is_active:
                self.log.add("Monitoring stopped, not sending greeting")
                return False

            state.last_ai_response = greeting
            state.add_message("assistant", greeting)
            self.log.add(f'Sending initial greeting: "{_preview(greeting)}"')
            if not await self.driver.send(greeting, self.app):
                self.log.add("Greeting was not sent")
                return False
            state.message_history.append(f"{self.username}: {greeting}")

            if self.greeting_cooldown > 0:
                await asyncio.sleep(self.greeting_cooldown)
            return True
        except Exception as e:
            print(f"[MONITOR] Error sending initial greeting: {type(e).__name__}: {e}")
            self.log.add(f"Error sending greeting: {e}")
            return False
        finally:
            state.processing_in_flight = False

    def status(self) -> Dict[str, Any]:
        state = self.state
        return {
            "active": state.is_active,
            "app": self.app.key,
            "username": self.username,
            "provider": self.responder.name,
            "processing": state.processing_in_flight,
            "greeting_sent": state.greeting_sent,
            "last_message": state.last_message,
            "last_ai_response": state.last_ai_response,
            "ocr_chars": len(state.last_ocr_text),
            "discord_context": self.discord_context.to_dict() if self.discord_context else None,
        }
