import threading

import pytest

from dialogue_memory.models import Interaction
from dialogue_memory.short_term import ShortTermMemoryStore


class TestShortTermMemoryStore:
    def test_evicts_oldest(self, make_interaction):
        store = ShortTermMemoryStore(max_turns=2)
        a, b, c = (make_interaction(x) for x in "ABC")

        assert store.append("s1", a) is None
        assert store.append("s1", b) is None
        assert store.append("s1", c) == a

        assert store.read("s1") == [b, c]

    @pytest.mark.parametrize("n, k", [(0, 3), (1, 3), (3, 3), (7, 3), (5, 1)])
    def test_window_holds_most_recent(self, n, k):
        store = ShortTermMemoryStore(max_turns=k)
        turns = [Interaction(input=str(i), response=str(i)) for i in range(n)]
        for turn in turns:
            store.append("s", turn)

        result = store.read("s")
        assert len(result) == min(n, k)
        assert result == turns[max(0, n - k):]

    def test_unknown_session_reads_empty(self):
        assert ShortTermMemoryStore().read("nobody") == []

    def test_sessions_are_isolated(self, make_interaction):
        store = ShortTermMemoryStore()
        store.append("s1", make_interaction("1"))
        store.append("s2", make_interaction("2"))
        assert [t.input for t in store.read("s1")] == ["input 1"]
        assert [t.input for t in store.read("s2")] == ["input 2"]

    def test_read_returns_copy(self, make_interaction):
        store = ShortTermMemoryStore()
        store.append("s", make_interaction("1"))
        snapshot = store.read("s")
        snapshot.clear()
        assert len(store.read("s")) == 1

    def test_replace_keeps_newest(self):
        store = ShortTermMemoryStore(max_turns=2)
        turns = [Interaction(input=str(i), response="") for i in range(4)]
        store.replace("s", turns)
        assert store.read("s") == turns[2:]

    def test_clear_is_idempotent(self, make_interaction):
        store = ShortTermMemoryStore()
        store.append("s", make_interaction("1"))
        store.clear("s")
        store.clear("s")
        assert "s" not in store
        assert store.read("s") == []

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            ShortTermMemoryStore(max_turns=0)

    def test_concurrent_appends_keep_bound(self):
        store = ShortTermMemoryStore(max_turns=5)

        def writer(session_id):
            for i in range(200):
                store.append(session_id, Interaction(input=str(i), response=""))

        threads = [threading.Thread(target=writer, args=(f"s{i % 2}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.read("s0")) == 5
        assert len(store.read("s1")) == 5
