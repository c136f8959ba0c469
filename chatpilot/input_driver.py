"""Simulated mouse/keyboard input that types and sends replies."""

import asyncio
import re
from typing import Any, Callable, List, Optional

from chatpilot.apps import AppProfile

# Pauses after moving to the input box before typing starts
SETTLE_DELAYS = (0.3, 0.3, 0.5)


def split_chunks(text: str, size: int = 15) -> List[str]:
    """Split text into typing chunks of at most ``size`` characters.

    Line breaks become spaces so a multi-line reply never submits early.
    """
    text = re.sub(r"[\r\n]+", " ", text or "")
    return re.findall(r".{1,%d}" % max(1, int(size)), text)


class InputDriver:
    """Drives the pointer and keyboard through pyautogui.

    Each primitive is a blocking pyautogui call pushed to a worker thread so
    the event loop keeps running while we type.
    """

    def __init__(
        self,
        backend: Any = None,
        chunk_size: int = None,
        chunk_delay: float = None,
        send_cooldown: float = None,
        settle_delays=SETTLE_DELAYS,
        log: Optional[Callable[[str], Any]] = None,
    ):
        from chatpilot.config import Config
        self._backend = backend
        self.chunk_size = chunk_size if chunk_size is not None else Config.TYPE_CHUNK_SIZE
        self.chunk_delay = chunk_delay if chunk_delay is not None else Config.TYPE_CHUNK_DELAY_SECONDS
        self.send_cooldown = send_cooldown if send_cooldown is not None else Config.SEND_COOLDOWN_SECONDS
        self.settle_delays = tuple(settle_delays)
        self._log = log or (lambda message: print(f"[DRIVER] {message}"))

    @property
    def backend(self):
        if self._backend is None:
            # Imported lazily: pyautogui needs a display as soon as it loads
            import pyautogui
            pyautogui.FAILSAFE = True
            self._backend = pyautogui
        return self._backend

    async def move_mouse(self, x: int, y: int):
        await asyncio.to_thread(self.backend.moveTo, x, y)

    async def click(self, button: str = "left"):
        await asyncio.to_thread(self.backend.click, button=button)

    async def type(self, text: str):
        await asyncio.to_thread(self.backend.write, text)

    async def press(self, key: str):
        await asyncio.to_thread(self.backend.press, key)

    async def send(self, text: str, app: AppProfile) -> bool:
        """Type ``text`` into the app's input box and submit it with enter.

        Returns True once the message was submitted and the send cooldown has
        passed, False if any step failed. Failed sends are not retried.
        """
        try:
            self._log(f"Sending response to {app.label}")

            x, y = app.input_box
            print(f"[DRIVER] Moving mouse to input box: ({x}, {y})")
            await self.move_mouse(x, y)
            await self.click("left")
            for delay in self.settle_delays:
                await asyncio.sleep(delay)

            self._log("Typing response")
            for chunk in split_chunks(text, self.chunk_size):
                await self.type(chunk)
                await asyncio.sleep(self.chunk_delay)

            await self.press("enter")
            self._log("Response sent successfully")
        except Exception as e:
            print(f"[DRIVER] Error in send: {e}")
            self._log(f"Error sending: {e}")
            return False

        if self.send_cooldown > 0:
            self._log(f"Waiting for {self.send_cooldown:g} seconds before resuming monitoring")
            await asyncio.sleep(self.send_cooldown)
        return True
