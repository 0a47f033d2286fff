import asyncio

from conftest import FakeCapability, make_record, wait_until
from services.chat.conversation_controller import ConversationController
from services.openai.prompts import GREETING_NO_CONTEXT, GREETING_READY, PRIMING_FAILED_MESSAGE, STREAM_APOLOGY


def texts(controller):
    return [turn.text for turn in controller.turns]


def speakers(controller):
    return [turn.speaker for turn in controller.turns]


class TestOpenClose:
    """Tests for toggling the chat panel."""

    def test_open_without_diagnosis_greets_once(self, fake_capability):
        controller = ConversationController(fake_capability)

        async def scenario():
            await controller.open()
            controller.close()
            await controller.open()

        asyncio.run(scenario())
        assert texts(controller) == [GREETING_NO_CONTEXT]
        assert fake_capability.sessions == []

    def test_close_keeps_session(self, fake_capability):
        controller = ConversationController(fake_capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            controller.close()

        asyncio.run(scenario())
        assert not controller.is_open
        assert controller.ready

    def test_diagnosis_while_closed_primes_on_open(self, fake_capability):
        controller = ConversationController(fake_capability)
        record = make_record()

        asyncio.run(controller.on_new_diagnosis(record))
        assert fake_capability.sessions == []
        assert controller.turns == []

        asyncio.run(controller.open())
        assert len(fake_capability.sessions) == 1
        assert controller.session.record is record
        assert texts(controller) == [GREETING_READY]


class TestPriming:
    """Tests for session (re)initialization."""

    def test_same_record_twice_primes_once(self, fake_capability):
        controller = ConversationController(fake_capability)
        record = make_record()

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(record)
            first_session = controller.session
            await controller.on_new_diagnosis(record)
            return first_session

        first_session = asyncio.run(scenario())
        assert len(fake_capability.sessions) == 1
        assert controller.session is first_session
        assert texts(controller) == [GREETING_READY]

    def test_equal_text_from_new_record_still_reprimes(self, fake_capability):
        controller = ConversationController(fake_capability)
        first, second = make_record("Powdery mildew."), make_record("Powdery mildew.")

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(first)
            await controller.on_new_diagnosis(second)

        asyncio.run(scenario())
        assert len(fake_capability.sessions) == 2
        assert controller.session.record is second

    def test_new_diagnosis_clears_transcript(self):
        capability = FakeCapability(replies=[["Copper spray."]])
        controller = ConversationController(capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            await controller.submit("What's the cure?")
            await controller.on_new_diagnosis(make_record("Rust."))

        asyncio.run(scenario())
        assert texts(controller) == [GREETING_READY]

    def test_new_image_unbinds_session_and_transcript(self):
        capability = FakeCapability(replies=[["Copper spray."]])
        controller = ConversationController(capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            await controller.submit("What's the cure?")
            controller.on_new_image()

        asyncio.run(scenario())
        assert controller.context is None
        assert controller.session is None
        assert controller.turns == []
        assert not controller.ready
        assert controller.status()["diagnosis_id"] is None

    def test_new_image_drops_priming_in_flight(self, fake_capability):
        controller = ConversationController(fake_capability)

        async def scenario():
            gate = asyncio.Event()
            fake_capability.priming_gate = gate
            await controller.open()
            priming = asyncio.create_task(controller.on_new_diagnosis(make_record()))
            await wait_until(lambda: len(fake_capability.sessions) == 1)
            controller.on_new_image()
            gate.set()
            await priming

        asyncio.run(scenario())
        assert controller.session is None
        assert controller.turns == []

    def test_priming_failure_is_surfaced_and_retryable(self, fake_capability):
        fake_capability.priming_error = RuntimeError("service outage")
        controller = ConversationController(fake_capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())

        asyncio.run(scenario())
        assert controller.session is None
        assert texts(controller) == [PRIMING_FAILED_MESSAGE]
        assert "service outage" in controller.last_error

        fake_capability.priming_error = None
        asyncio.run(controller.open())
        assert controller.ready
        assert texts(controller) == [GREETING_READY]

    def test_priming_for_superseded_record_is_discarded(self, fake_capability):
        controller = ConversationController(fake_capability)
        first, second = make_record("Blight."), make_record("Scab.")

        async def scenario():
            gate = asyncio.Event()
            fake_capability.priming_gate = gate
            await controller.open()
            first_task = asyncio.create_task(controller.on_new_diagnosis(first))
            await wait_until(lambda: len(fake_capability.sessions) == 1)
            second_task = asyncio.create_task(controller.on_new_diagnosis(second))
            await wait_until(lambda: len(fake_capability.sessions) == 2)
            gate.set()
            await asyncio.gather(first_task, second_task)

        asyncio.run(scenario())
        assert controller.session.record is second
        assert texts(controller) == [GREETING_READY]


class TestSubmit:
    """Tests for sending questions and aggregating streamed replies."""

    def test_fragments_fold_into_one_trailing_turn(self):
        capability = FakeCapability(replies=[["Leaf ", "spot ", "disease."]])
        controller = ConversationController(capability)
        snapshots = []

        async def on_update(turn):
            snapshots.append((len(controller.turns), turn.text, controller.turns[-1] is turn, turn.live))

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            return await controller.submit("What is it?", on_update=on_update)

        reply = asyncio.run(scenario())
        assert snapshots == [
            (3, "Leaf ", True, True),
            (3, "Leaf spot ", True, True),
            (3, "Leaf spot disease.", True, True),
        ]
        assert texts(controller) == [GREETING_READY, "What is it?", "Leaf spot disease."]
        assert speakers(controller) == ["assistant", "user", "assistant"]
        assert reply is controller.turns[-1]
        assert not reply.live

    def test_blank_text_is_ignored(self, fake_capability):
        controller = ConversationController(fake_capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            return await controller.submit("   ")

        assert asyncio.run(scenario()) is None
        assert texts(controller) == [GREETING_READY]
        assert fake_capability.sent == []

    def test_submit_without_session_is_ignored(self, fake_capability):
        controller = ConversationController(fake_capability)

        async def scenario():
            await controller.open()
            return await controller.submit("Hello?")

        assert asyncio.run(scenario()) is None
        assert texts(controller) == [GREETING_NO_CONTEXT]

    def test_concurrent_submit_is_rejected(self):
        capability = FakeCapability()
        controller = ConversationController(capability)

        async def scenario():
            gate = asyncio.Event()
            capability.replies = [["Leaf ", gate, "spot ", "disease."]]
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            first = asyncio.create_task(controller.submit("first"))
            await wait_until(lambda: controller.turns[-1].text == "Leaf ")
            assert controller.busy
            second = await controller.submit("second")
            assert second is None
            assert texts(controller) == [GREETING_READY, "first", "Leaf "]
            gate.set()
            return await first

        reply = asyncio.run(scenario())
        assert reply.text == "Leaf spot disease."
        assert texts(controller) == [GREETING_READY, "first", "Leaf spot disease."]
        assert [text for _, text in capability.sent] == ["first"]
        assert not controller.busy

    def test_stale_fragments_are_discarded_after_new_diagnosis(self):
        capability = FakeCapability()
        controller = ConversationController(capability)
        record_b = make_record("Late blight.")

        async def scenario():
            gate = asyncio.Event()
            capability.replies = [["Leaf ", gate, "stale ", "text"]]
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            stream_task = asyncio.create_task(controller.submit("What is it?"))
            await wait_until(lambda: controller.turns[-1].text == "Leaf ")
            await controller.on_new_diagnosis(record_b)
            gate.set()
            await stream_task
            return await controller.submit("And now?")

        asyncio.run(scenario())
        assert controller.session.record is record_b
        assert texts(controller) == [GREETING_READY, "And now?", "Sure."]
        assert not any("stale" in text for text in texts(controller))
        assert not controller.busy

    def test_new_session_accepts_input_while_old_stream_is_orphaned(self):
        capability = FakeCapability()
        controller = ConversationController(capability)

        async def scenario():
            gate = asyncio.Event()
            capability.replies = [["Old ", gate, "reply"], ["New reply."]]
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            old_task = asyncio.create_task(controller.submit("old question"))
            await wait_until(lambda: controller.turns[-1].text == "Old ")
            await controller.on_new_diagnosis(make_record("Scab."))
            assert not controller.busy
            new_reply = await controller.submit("new question")
            gate.set()
            await old_task
            return new_reply

        new_reply = asyncio.run(scenario())
        assert new_reply.text == "New reply."
        assert texts(controller) == [GREETING_READY, "new question", "New reply."]

    def test_stale_stream_error_does_not_reach_new_transcript(self):
        capability = FakeCapability()
        controller = ConversationController(capability)
        record_b = make_record("Late blight.")

        async def scenario():
            gate = asyncio.Event()
            capability.replies = [["Leaf ", gate]]
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            old_task = asyncio.create_task(controller.submit("What is it?"))
            await wait_until(lambda: controller.turns[-1].text == "Leaf ")
            await controller.on_new_diagnosis(record_b)
            capability.stream_error = ConnectionError("stream dropped")
            gate.set()
            await old_task

        asyncio.run(scenario())
        assert controller.session.record is record_b
        assert texts(controller) == [GREETING_READY]
        assert controller.last_error is None
        assert controller.ready
        assert not controller.busy

    def test_stream_error_appends_apology_and_stays_ready(self):
        capability = FakeCapability(replies=[["Partial "], ["Second try."]])
        capability.stream_error = ConnectionError("stream dropped")
        controller = ConversationController(capability)

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(make_record())
            await controller.submit("Why?")
            capability.stream_error = None
            return await controller.submit("Why?")

        reply = asyncio.run(scenario())
        assert texts(controller) == [GREETING_READY, "Why?", "Partial ", STREAM_APOLOGY, "Why?", "Second try."]
        assert "stream dropped" in controller.last_error
        assert reply.text == "Second try."
        assert controller.ready

    def test_status_snapshot(self):
        capability = FakeCapability(replies=[["Copper spray."]])
        controller = ConversationController(capability)
        record = make_record()

        async def scenario():
            await controller.open()
            await controller.on_new_diagnosis(record)
            await controller.submit("What's the cure?")

        asyncio.run(scenario())
        status = controller.status()
        assert status["open"] is True
        assert status["ready"] is True
        assert status["busy"] is False
        assert status["diagnosis_id"] == record.record_id
        assert status["messages"][-2:] == [
            {"role": "user", "content": "What's the cure?", "live": False},
            {"role": "assistant", "content": "Copper spray.", "live": False},
        ]
