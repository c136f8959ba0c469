import asyncio

from chatpilot.models import ConversationVerdict
from chatpilot.monitor import is_self_echo

from conftest import FakeOcrSource, FakeResponder, log_messages


def reply_verdict(message="Hi, how are you?", sender="Alex"):
    return ConversationVerdict(
        new_message_detected=True,
        should_reply=True,
        message=message,
        sender=sender,
        reasoning="new question from Alex",
    )


def test_identical_snapshots_never_trigger_analysis(make_monitor, pyautogui_fake):
    responder = FakeResponder(verdict=reply_verdict())
    monitor = make_monitor(responder=responder)
    monitor.state.is_active = True

    for _ in range(5):
        assert monitor.handle_text("Hello") is None

    assert responder.analyze_calls == []
    assert pyautogui_fake.calls == []
    assert monitor.state.last_ocr_text == "Hello"


def test_new_message_is_analyzed_and_answered_once(make_monitor, pyautogui_fake):
    responder = FakeResponder(verdict=reply_verdict())
    monitor = make_monitor(responder=responder)

    async def scenario():
        monitor.state.is_active = True
        assert monitor.handle_text("Hello") is None  # baseline
        assert monitor.handle_text("Hello") is None  # unchanged
        task = monitor.handle_text("Hello\nHi, how are you?")
        assert task is not None
        assert monitor.state.processing_in_flight
        await task

    asyncio.run(scenario())

    assert len(responder.analyze_calls) == 1
    call = responder.analyze_calls[0]
    assert call["previous"] == "Hello"
    assert call["current"] == "Hello\nHi, how are you?"
    assert call["username"] == "Me"

    assert len(responder.reply_calls) == 1
    assert responder.reply_calls[0]["message"] == "Hi, how are you?"
    assert pyautogui_fake.typed() == "Doing great, you?"
    assert pyautogui_fake.presses() == 1

    state = monitor.state
    assert state.processing_in_flight is False
    assert state.last_ai_response == "Doing great, you?"
    assert [m.role for m in state.chat_history] == ["user", "assistant"]
    assert state.message_history == ["Hi, how are you?", "Me: Doing great, you?"]


def test_self_echo_is_not_answered(make_monitor, pyautogui_fake):
    responder = FakeResponder(verdict=reply_verdict(message="Me: See you at 5 then", sender="Me"))
    monitor = make_monitor(responder=responder)

    async def scenario():
        monitor.state.is_active = True
        monitor.state.last_ai_response = "See you at 5"
        monitor.handle_text("old")
        await monitor.handle_text("old\nSee you at 5 then")

    asyncio.run(scenario())

    assert responder.analyze_calls[0]["last_own_response"] == "See you at 5"
    assert responder.reply_calls == []
    assert pyautogui_fake.calls == []
    assert "Detected message appears to be our own response, skipping" in log_messages(monitor)
    assert monitor.state.processing_in_flight is False


def test_is_self_echo():
    assert is_self_echo("Alex: ok see you", "ok see you")
    assert not is_self_echo("ok see you", "")
    assert not is_self_echo("something else", "ok see you")


def test_no_reply_verdict_is_logged(make_monitor, pyautogui_fake):
    verdict = ConversationVerdict(True, False, "lol", "Alex", "just a reaction")
    monitor = make_monitor(responder=FakeResponder(verdict=verdict))

    async def scenario():
        monitor.state.is_active = True
        monitor.handle_text("a")
        await monitor.handle_text("a\nlol")

    asyncio.run(scenario())

    assert pyautogui_fake.calls == []
    assert "Message detected but AI decided not to reply: just a reaction" in log_messages(monitor)


def test_in_flight_blocks_new_cycles(make_monitor):
    ocr = FakeOcrSource(["changed text"])
    responder = FakeResponder(verdict=reply_verdict())
    monitor = make_monitor(responder=responder, ocr=ocr, busy_backoff=0.25)
    monitor.state.is_active = True
    monitor.state.last_ocr_text = "baseline"
    monitor.state.processing_in_flight = True

    delay = asyncio.run(monitor.poll_once())

    assert delay == 0.25
    assert ocr.calls == 0
    assert monitor.handle_text("changed text") is None
    assert monitor.state.last_ocr_text == "baseline"
    assert responder.analyze_calls == []


def test_poll_errors_and_empty_results_keep_looping(make_monitor):
    ocr = FakeOcrSource([ConnectionError("screenpipe down"), None, ""])
    monitor = make_monitor(ocr=ocr, poll_interval=0.5)
    monitor.state.is_active = True

    async def scenario():
        return [await monitor.poll_once() for _ in range(3)]

    assert asyncio.run(scenario()) == [0.5, 0.5, 0.5]
    messages = log_messages(monitor)
    assert "OCR error: screenpipe down" in messages
    assert messages.count("No OCR data available") == 2
    assert monitor.state.last_ocr_text == ""


def test_analysis_error_releases_in_flight_flag(make_monitor, pyautogui_fake):
    monitor = make_monitor(responder=FakeResponder(verdict=RuntimeError("model offline")))

    async def scenario():
        monitor.state.is_active = True
        monitor.handle_text("a")
        await monitor.handle_text("a\nb")

    asyncio.run(scenario())

    assert monitor.state.processing_in_flight is False
    assert "Analysis error: model offline" in log_messages(monitor)
    assert pyautogui_fake.calls == []


def test_stop_during_analysis_suppresses_send(make_monitor, pyautogui_fake):
    async def scenario():
        gate = asyncio.Event()
        responder = FakeResponder(verdict=reply_verdict(), analysis_gate=gate)
        monitor = make_monitor(responder=responder)
        monitor.start()
        monitor.handle_text("Hello")
        task = monitor.handle_text("Hello\nHi, how are you?")
        await asyncio.sleep(0)

        monitor.stop()
        gate.set()
        await task
        return monitor, responder

    monitor, responder = asyncio.run(scenario())

    assert len(responder.analyze_calls) == 1
    assert responder.reply_calls == []
    assert pyautogui_fake.calls == []
    assert "Monitoring stopped, discarding analysis result" in log_messages(monitor)


def test_greeting_is_sent_only_once(make_monitor, pyautogui_fake):
    responder = FakeResponder(greeting="Hey! 👋 What's up?")
    monitor = make_monitor(responder=responder)

    async def scenario():
        monitor.state.is_active = True
        monitor.handle_text("Chat with Alex")
        first = await monitor.fire_greeting()
        second = await monitor.fire_greeting()
        return first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (True, False)
    assert len(responder.greeting_calls) == 1
    assert responder.greeting_calls[0]["ocr"] == "Chat with Alex"
    assert pyautogui_fake.presses() == 1
    assert monitor.state.greeting_sent is True
    assert monitor.state.last_ai_response == "Hey! 👋 What's up?"
    assert monitor.state.processing_in_flight is False


def test_greeting_timer_fires_when_nothing_happens(make_monitor, pyautogui_fake):
    responder = FakeResponder()
    ocr = FakeOcrSource(["Chat with Alex"])
    monitor = make_monitor(responder=responder, ocr=ocr, greeting_delay=0.05, poll_interval=0.01)

    async def scenario():
        monitor.start()
        await asyncio.sleep(0.3)
        monitor.stop()
        await monitor.drain()

    asyncio.run(scenario())

    assert len(responder.greeting_calls) == 1
    assert pyautogui_fake.presses() == 1
    assert responder.analyze_calls == []


def test_greeting_skipped_while_processing(make_monitor, pyautogui_fake):
    monitor = make_monitor()

    async def scenario():
        monitor.state.is_active = True
        monitor.state.processing_in_flight = True
        return await monitor.fire_greeting()

    assert asyncio.run(scenario()) is False
    assert monitor.state.greeting_sent is False
    assert pyautogui_fake.calls == []


def test_greeting_not_sent_after_stop(make_monitor, pyautogui_fake):
    monitor = make_monitor()
    assert asyncio.run(monitor.fire_greeting()) is False
    assert pyautogui_fake.calls == []


def test_run_loop_detects_change_and_stops_cleanly(make_monitor, pyautogui_fake):
    ocr = FakeOcrSource(["Hello", "Hello", "Hello\nHi, how are you?"])
    responder = FakeResponder(verdict=reply_verdict())
    monitor = make_monitor(responder=responder, ocr=ocr)

    async def scenario():
        assert monitor.start() is True
        assert monitor.start() is False
        await asyncio.sleep(0.3)
        monitor.stop()
        await monitor.drain()

    asyncio.run(scenario())

    assert len(responder.analyze_calls) == 1
    assert responder.analyze_calls[0]["previous"] == "Hello"
    assert pyautogui_fake.presses() == 1
    assert monitor.is_active is False
    assert "Stopped monitoring WhatsApp" in log_messages(monitor)


def test_sessions_do_not_share_state(make_monitor):
    first = make_monitor()
    second = make_monitor()
    first.state.is_active = True
    first.handle_text("Hello")
    first.state.greeting_sent = True

    assert second.state.last_ocr_text == ""
    assert second.state.greeting_sent is False


def test_discord_context_reaches_analyzer(make_monitor):
    responder = FakeResponder()
    monitor = make_monitor(responder=responder, app="discord")

    async def scenario():
        monitor.state.is_active = True
        monitor.handle_text("my-server\n# general\nsam 10:01: hi")
        await monitor.handle_text("my-server\n# general\nsam 10:01: hi\nsam 10:02: anyone here?")

    asyncio.run(scenario())

    assert monitor.discord_context.channel_name == "general"
    assert "#general channel" in responder.analyze_calls[0]["context_instructions"]


def test_stop_cancels_pending_greeting(make_monitor, pyautogui_fake):
    responder = FakeResponder()
    monitor = make_monitor(responder=responder, ocr=FakeOcrSource(["Chat with Alex"]), greeting_delay=0.1)

    async def scenario():
        monitor.start()
        await asyncio.sleep(0.02)
        timer = monitor._greeting_task
        assert timer is not None and not timer.done()

        monitor.stop()
        await asyncio.sleep(0.2)
        await monitor.drain()
        return timer

    timer = asyncio.run(scenario())

    assert timer.cancelled()
    assert responder.greeting_calls == []
    assert pyautogui_fake.calls == []
    assert monitor.state.greeting_sent is False


def test_failed_send_is_not_recorded(make_monitor, pyautogui_fake):
    pyautogui_fake.fail_on = "write"
    monitor = make_monitor(responder=FakeResponder(verdict=reply_verdict()), reply_cooldown=30)

    async def scenario():
        monitor.state.is_active = True
        monitor.handle_text("Hello")
        await asyncio.wait_for(monitor.handle_text("Hello\nHi, how are you?"), timeout=5)

    asyncio.run(scenario())

    assert monitor.state.message_history == ["Hi, how are you?"]
    assert pyautogui_fake.presses() == 0
    messages = log_messages(monitor)
    assert "Response was not sent" in messages
    assert not any("cooldown" in m for m in messages)
    assert monitor.state.processing_in_flight is False
