"""
Incremental text reconciliation for streaming dictation.

Every streaming tick re-transcribes the whole buffer, so each transcript
repeats what earlier ones said. The reconciler remembers what has already
been typed and returns only the new tail of each transcript.

Words are compared tolerantly (case, surrounding punctuation and spacing
are ignored) because a longer audio window often re-renders earlier words
slightly differently ("hello" -> "Hello,").

When a transcript disagrees with text that was already typed, nothing is
emitted: typed text cannot be taken back, so the earlier emission stands
and typing resumes once a transcript agrees with it again. The final pass
is the last chance to type anything, so on disagreement it continues with
the words positioned after the last typed word.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

_WORD_RE = re.compile(r"\S+")
_EDGE_PUNCT_RE = re.compile(r"^[^\w]+|[^\w]+$")


def normalize_word(word: str) -> str:
    stripped = _EDGE_PUNCT_RE.sub("", word.casefold())
    return stripped or word.casefold()


def split_words(text: str) -> List[Tuple[str, int, int]]:
    """(normalized word, start, end) for every word in ``text``."""
    return [(normalize_word(m.group()), m.start(), m.end()) for m in _WORD_RE.finditer(text)]


def common_word_prefix(a: str, b: str) -> int:
    """Number of leading words ``a`` and ``b`` share."""
    count = 0
    for (wa, _, _), (wb, _, _) in zip(split_words(a), split_words(b)):
        if wa != wb:
            break
        count += 1
    return count


@dataclass
class EmissionState:
    emitted: str = ""
    previous: str = ""


class Reconciler:
    """
    Turns successive full-buffer transcripts into appendable fragments.

    Args:
        require_agreement: Only emit words that the previous transcript also
            produced, trading one tick of latency for fewer divergences.
    """

    def __init__(self, require_agreement: bool = False):
        self.require_agreement = require_agreement
        self.state = EmissionState()

    @property
    def emitted(self) -> str:
        return self.state.emitted

    def reset(self) -> None:
        self.state = EmissionState()

    def reconcile(self, transcript: str) -> str:
        """Streaming step: return the text to type for ``transcript``."""
        limit = None
        if self.require_agreement:
            limit = common_word_prefix(self.state.previous, transcript)
        fragment = self._advance(transcript, limit)
        self.state.previous = transcript
        return fragment

    def finalize(self, transcript: str) -> str:
        """
        Final streaming pass on the complete audio; no agreement needed.

        If ``transcript`` disagrees with the typed text, the words of
        ``transcript`` after the position of the last typed word are emitted.
        """
        fragment = self._advance(transcript, None, resync=True)
        self.state.previous = transcript
        return fragment

    def flush(self, transcript: str) -> str:
        """Batch mode: the whole transcript is emitted as one fragment."""
        fragment = transcript.strip()
        self.state.emitted += fragment
        self.state.previous = transcript
        return fragment

    def _advance(self, transcript: str, limit: Optional[int], resync: bool = False) -> str:
        emitted_words = split_words(self.state.emitted)
        new_words = split_words(transcript)

        matched = 0
        for (we, _, _), (wt, _, _) in zip(emitted_words, new_words):
            if we != wt:
                break
            matched += 1

        if matched < len(emitted_words):
            if not resync:
                return ""
            matched = len(emitted_words)

        stop = len(new_words) if limit is None else min(limit, len(new_words))
        if stop <= matched:
            return ""

        start_offset = new_words[matched][1]
        end_offset = new_words[stop - 1][2]
        fragment = transcript[start_offset:end_offset]
        if self.state.emitted:
            fragment = " " + fragment

        self.state.emitted += fragment
        return fragment
