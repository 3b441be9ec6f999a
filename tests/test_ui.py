from prompt_toolkit.completion import CompleteEvent
from prompt_toolkit.document import Document

from chatmind.mentions import detect_mention
from chatmind.models import Participant
from chatmind.ui import MentionCompleter


class FakeSession:
    def __init__(self, participants, ai_muted=False):
        self.participants = participants
        self.ai_muted = ai_muted

    def detect_mention(self, text, cursor):
        return detect_mention(text, cursor, self.participants, self.ai_muted)


def _completions(completer, text):
    return list(completer.get_completions(Document(text, len(text)), CompleteEvent()))


def test_completer_offers_ai_and_participants():
    completer = MentionCompleter(FakeSession([Participant(id="u1", name="Bob Stone")]))

    completions = _completions(completer, "hello @")

    assert [c.text for c in completions] == ["@AI ", "@bobstone "]
    assert all(c.start_position == -1 for c in completions)


def test_completer_filters_by_query():
    completer = MentionCompleter(FakeSession([Participant(id="u1", name="Bob Stone")]))

    completions = _completions(completer, "@bo")

    assert [c.text for c in completions] == ["@bobstone "]
    assert completions[0].start_position == -3


def test_completer_silent_without_trigger_or_when_muted():
    session = FakeSession([], ai_muted=True)
    completer = MentionCompleter(session)

    assert _completions(completer, "no mention here") == []
    assert _completions(completer, "@a") == []


def test_completion_replaces_active_query_in_place():
    completer = MentionCompleter(FakeSession([Participant(id="u1", name="Bob Stone")]))
    text = "thanks @Bo"

    completion = _completions(completer, text)[0]
    applied = text[: len(text) + completion.start_position] + completion.text

    assert applied == "thanks @bobstone "
    assert completion.display_meta_text == "participant"
