from dialogue_memory.models import Interaction, MemoryContext
from dialogue_memory.token_counter import TokenCounter, estimate_tokens


class TestEstimateTokens:
    def test_empty(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_rounds_up(self):
        assert estimate_tokens("a") == 1
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("x" * 40) == 10


class TestTokenCounter:
    def test_custom_estimator(self):
        counter = TokenCounter(estimator=lambda text: len(text.split()))
        assert counter.count("one two three") == 3
        assert counter.count(None) == 0

    def test_count_context(self):
        counter = TokenCounter(estimator=len)
        context = MemoryContext(
            history=[Interaction(input="abc", response="de")],
            memories=["fgh", "i"],
            summary="jk",
        )
        assert counter.count_context(context) == 3 + 2 + 3 + 1 + 2

    def test_count_empty_context(self):
        assert TokenCounter().count_context(MemoryContext()) == 0
