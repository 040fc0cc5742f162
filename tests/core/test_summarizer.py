from dialogue_memory.models import Interaction
from dialogue_memory.summarizer import HeuristicSummarizer


def test_empty_input():
    assert HeuristicSummarizer().summarize([]) == ""


def test_mentions_turn_count_and_latest_topic():
    turns = [
        Interaction(input="hello", response="hi"),
        Interaction(input="tell me about the history of the Roman empire", response="..."),
    ]
    summary = HeuristicSummarizer().summarize(turns)
    assert summary == (
        "Conversation included 2 turns. "
        "Most recent topic: tell me about the history of t..."
    )
