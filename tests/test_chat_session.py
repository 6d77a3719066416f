"""Tests for the conversation store and the request orchestrator."""

import unittest
from unittest import mock

from pexi.chat_session import ChatSession
from pexi.chat_store import ChatStore
from pexi.gemini_api import GeminiClient, Reply
from pexi.messages import ContentPart, Role, Turn


class FakeClient:
    """Records every call and answers with a fixed reply (or raises)."""

    def __init__(self, reply: str = "hi there", exc: Exception | None = None,
                 failed: bool = False):
        self.reply = reply
        self.exc = exc
        self.failed = failed
        self.calls: list[tuple[tuple[Turn, ...], tuple[ContentPart, ...]]] = []

    def respond(self, history, new_parts) -> Reply:
        self.calls.append((tuple(history), tuple(new_parts)))
        if self.exc is not None:
            raise self.exc
        if self.failed:
            return Reply.failure(self.reply)
        return Reply(self.reply)


def _text(value: str) -> tuple[ContentPart, ...]:
    return (ContentPart.from_text(value),)


class TestChatStore(unittest.TestCase):

    def test_append_in_order(self) -> None:
        store = ChatStore()
        first = store.append(Role.USER, _text("a"))
        second = store.append(Role.MODEL, _text("b"))
        self.assertEqual(store.turns(), (first, second))
        self.assertEqual(len(store), 2)
        self.assertIs(store.last(), second)
        self.assertEqual(list(store), [first, second])

    def test_duplicate_id_rejected(self) -> None:
        store = ChatStore()
        turn = store.append(Role.USER, _text("a"))
        with self.assertRaises(ValueError):
            store.add_turn(turn)
        self.assertEqual(len(store), 1)

    def test_snapshot_is_detached(self) -> None:
        store = ChatStore()
        snapshot = store.history()
        store.append(Role.USER, _text("a"))
        self.assertEqual(snapshot, ())

    def test_empty_parts_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ChatStore().append(Role.USER, [])

    def test_last_on_empty(self) -> None:
        self.assertIsNone(ChatStore().last())


class TestChatSession(unittest.TestCase):

    def test_hello_scenario(self) -> None:
        client = FakeClient("hi there")
        session = ChatSession(client)

        model_turn = session.send(_text("hello"))

        history, parts = client.calls[0]
        self.assertEqual(history, ())
        self.assertEqual([p.to_dict() for p in parts], [{"text": "hello"}])
        self.assertEqual(
            [t.to_dict() for t in session.turns()],
            [
                {"role": "user", "parts": [{"text": "hello"}]},
                {"role": "model", "parts": [{"text": "hi there"}]},
            ],
        )
        self.assertIs(session.turns()[-1], model_turn)
        self.assertFalse(session.loading)
        self.assertIsNone(session.error)

    def test_each_exchange_adds_two_turns(self) -> None:
        session = ChatSession(FakeClient())
        for n in range(1, 4):
            session.send(_text(f"q{n}"))
            self.assertEqual(len(session.turns()), 2 * n)
        roles = [t.role for t in session.turns()]
        self.assertEqual(roles, [Role.USER, Role.MODEL] * 3)

    def test_rejected_submit_adds_nothing(self) -> None:
        client = FakeClient()
        session = ChatSession(client)
        self.assertIsNone(session.send(()))
        self.assertIsNone(session.send(None))
        self.assertEqual(session.turns(), ())
        self.assertEqual(client.calls, [])

    def test_history_excludes_new_user_turn(self) -> None:
        client = FakeClient()
        session = ChatSession(client)
        session.send(_text("first"))
        session.send(_text("second"))
        history, parts = client.calls[1]
        self.assertEqual([t.text for t in history], ["first", "hi there"])
        self.assertEqual(parts[0].text, "second")

    def test_attachment_only_parts_passed_through(self) -> None:
        client = FakeClient()
        session = ChatSession(client)
        image = ContentPart.from_inline_data("image/png", "abc")
        session.send((image,))
        _, parts = client.calls[0]
        self.assertEqual(parts, (image,))
        self.assertEqual(session.turns()[0].parts, (image,))

    def test_client_exception_becomes_error_turn(self) -> None:
        session = ChatSession(FakeClient(exc=Exception("quota exceeded")))
        turn = session.send(_text("hello"))
        self.assertEqual(turn.role, Role.MODEL)
        self.assertEqual(turn.text, "Error: quota exceeded")
        self.assertFalse(session.loading)
        self.assertEqual(session.error, "quota exceeded")
        self.assertEqual(len(session.turns()), 2)

    def test_failed_reply_sets_banner(self) -> None:
        session = ChatSession(FakeClient("Network error", failed=True))
        turn = session.send(_text("hello"))
        self.assertEqual(session.error, "Network error")
        self.assertEqual(turn.text, "Error: Network error")
        self.assertTrue(turn.failed)

    def test_successful_reply_starting_with_error_is_not_a_failure(self) -> None:
        session = ChatSession(FakeClient("Error: that is what Python prints"))
        turn = session.send(_text("what does a traceback end with?"))
        self.assertEqual(turn.text, "Error: that is what Python prints")
        self.assertFalse(turn.failed)
        self.assertIsNone(session.error)

    def test_finish_without_request_is_ignored(self) -> None:
        session = ChatSession(FakeClient())
        self.assertIsNone(session.finish(Reply("stray")))
        self.assertEqual(session.turns(), ())

        request = session.begin(_text("one"))
        session.finish(session.run(request))
        self.assertIsNone(session.finish(Reply("late duplicate")))
        self.assertEqual([t.role for t in session.turns()],
                         [Role.USER, Role.MODEL])

    def test_banner_cleared_on_next_submit(self) -> None:
        client = FakeClient(exc=RuntimeError("down"))
        session = ChatSession(client)
        session.send(_text("a"))
        self.assertIsNotNone(session.error)
        client.exc = None
        session.begin(_text("b"))
        self.assertIsNone(session.error)

    def test_second_submit_while_in_flight_is_noop(self) -> None:
        client = FakeClient()
        session = ChatSession(client)

        request = session.begin(_text("one"))
        self.assertIsNotNone(request)
        self.assertTrue(session.loading)
        self.assertEqual(len(session.turns()), 1)

        self.assertIsNone(session.begin(_text("two")))
        self.assertIsNone(session.send(_text("three")))
        self.assertEqual(len(session.turns()), 1)

        session.finish(session.run(request))
        self.assertFalse(session.loading)
        self.assertEqual([t.text for t in session.turns()],
                         ["one", "hi there"])
        self.assertEqual(len(client.calls), 1)

    def test_user_turn_appended_before_request(self) -> None:
        session = ChatSession(FakeClient())
        seen: list[int] = []

        class CountingClient(FakeClient):
            def respond(self, history, new_parts):
                seen.append(len(session.turns()))
                return Reply("ok")

        session._client = CountingClient()  # noqa: SLF001
        session.send(_text("hi"))
        self.assertEqual(seen, [1])

    def test_subscribers_notified(self) -> None:
        session = ChatSession(FakeClient())
        calls: list[bool] = []
        unsubscribe = session.subscribe(lambda: calls.append(session.loading))
        session.send(_text("hi"))
        self.assertEqual(calls, [True, False])
        unsubscribe()
        session.send(_text("again"))
        self.assertEqual(len(calls), 2)

    def test_uses_given_store(self) -> None:
        store = ChatStore()
        session = ChatSession(FakeClient(), store=store)
        session.send(_text("hi"))
        self.assertIs(session.store, store)
        self.assertEqual(len(store), 2)

    @mock.patch("pexi.gemini_api.requests.post")
    def test_with_gemini_client_http_failure(self, post: mock.Mock) -> None:
        resp = mock.Mock(ok=False, status_code=429,
                         text='{"error": {"message": "quota exceeded"}}')
        resp.json.return_value = {"error": {"message": "quota exceeded",
                                            "status": "RESOURCE_EXHAUSTED"}}
        post.return_value = resp
        session = ChatSession(GeminiClient("key"))
        turn = session.send(_text("hello"))
        self.assertTrue(turn.text.startswith("Error: "))
        self.assertIn("quota exceeded", turn.text)
        self.assertIn("quota exceeded", session.error)
        self.assertFalse(session.loading)
        self.assertTrue(turn.failed)

    @mock.patch("pexi.gemini_api.requests.post")
    def test_with_gemini_client_reply_starting_with_error(
        self, post: mock.Mock,
    ) -> None:
        resp = mock.Mock(ok=True, status_code=200, text="{}")
        resp.json.return_value = {"candidates": [{"content": {"parts": [
            {"text": "Error: this is how Python prints it"},
        ]}}]}
        post.return_value = resp
        session = ChatSession(GeminiClient("key"))
        turn = session.send(_text("how does Python print errors?"))
        self.assertEqual(turn.text, "Error: this is how Python prints it")
        self.assertFalse(turn.failed)
        self.assertIsNone(session.error)


if __name__ == "__main__":
    unittest.main()
