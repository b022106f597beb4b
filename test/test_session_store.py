"""
Tests for the bounded conversation state store
"""

import threading
import unittest
from datetime import timedelta

from services.response_engine import ConversationStateStore
from test import BaseTestCase, FakeClock


class TestConversationStateStore(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.clock = FakeClock()
        self.store = ConversationStateStore(max_sessions=3, ttl=timedelta(minutes=60), clock=self.clock)

    def test_get_unknown_returns_none(self):
        self.assertIsNone(self.store.get('missing'))
        self.assertNotIn('missing', self.store)

    def test_get_or_create_initializes_session(self):
        session = self.store.get_or_create('conv-1')
        self.assertEqual(session.conversation_id, 'conv-1')
        self.assertEqual(session.message_count, 0)
        self.assertEqual(session.start_time, self.clock.now)
        self.assertFalse(session.proactive_engaged)
        self.assertIs(self.store.get_or_create('conv-1'), session)

    def test_least_recently_used_session_is_evicted(self):
        for conversation_id in ('a', 'b', 'c'):
            self.store.get_or_create(conversation_id)
        self.store.get('a')
        self.store.get_or_create('d')

        self.assertEqual(len(self.store), 3)
        self.assertNotIn('b', self.store)
        self.assertIn('a', self.store)

    def test_idle_sessions_expire(self):
        self.store.get_or_create('conv-1')
        self.clock.advance(minutes=61)
        self.assertIsNone(self.store.get('conv-1'))
        self.assertEqual(len(self.store), 0)

    def test_cleanup_expired_sessions(self):
        self.store.get_or_create('old')
        self.clock.advance(minutes=45)
        self.store.get_or_create('new')
        self.clock.advance(minutes=20)

        self.assertEqual(self.store.cleanup_expired_sessions(), 1)
        self.assertEqual([s.conversation_id for s in self.store.all_sessions()], ['new'])

    def test_no_ttl_never_expires(self):
        store = ConversationStateStore(ttl=None, clock=self.clock)
        store.get_or_create('conv-1')
        self.clock.advance(days=30)
        self.assertIsNotNone(store.get('conv-1'))
        self.assertEqual(store.cleanup_expired_sessions(), 0)

    def test_clear(self):
        self.store.get_or_create('conv-1')
        self.assertTrue(self.store.clear('conv-1'))
        self.assertFalse(self.store.clear('conv-1'))
        self.assertIsNone(self.store.get('conv-1'))

    def test_lock_is_per_conversation_and_reentrant(self):
        lock = self.store.lock_for('conv-1')
        self.assertIs(self.store.lock_for('conv-1'), lock)
        self.assertIsNot(self.store.lock_for('conv-2'), lock)
        with lock:
            with self.store.lock_for('conv-1'):
                pass

    def test_discard_lock_only_without_session(self):
        self.store.get_or_create('conv-1')
        kept = self.store.lock_for('conv-1')
        self.store.lock_for('ghost')

        self.store.discard_lock('conv-1')
        self.store.discard_lock('ghost')
        self.assertIs(self.store.lock_for('conv-1'), kept)
        self.assertNotIn('ghost', self.store._locks)

    def test_concurrent_updates_under_lock_are_not_lost(self):
        store = ConversationStateStore(clock=self.clock)
        store.get_or_create('conv-1')

        def worker():
            for _ in range(200):
                with store.lock_for('conv-1'):
                    session = store.get_or_create('conv-1')
                    session.message_count += 1
                    store.save(session)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(store.get('conv-1').message_count, 800)


if __name__ == '__main__':
    unittest.main()
