from typing import TYPE_CHECKING

from prompt_toolkit.completion import Completer, Completion

from chatmind.mentions import select_mention

if TYPE_CHECKING:
    from chatmind.services.session_service import SessionService


class MentionCompleter(Completer):
    """Completes the ``@query`` under the cursor with room mention candidates."""

    def __init__(self, session: "SessionService"):
        self.session = session

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        match = self.session.detect_mention(text, len(text))
        if match is None:
            return
        replaced = len(text) - match.start
        for option in match.options:
            new_text, new_cursor = select_mention(text, len(text), match, option)
            yield Completion(
                new_text[match.start : new_cursor],
                start_position=-replaced,
                display=option.name,
                display_meta="assistant" if option.kind == "ai" else "participant",
            )
