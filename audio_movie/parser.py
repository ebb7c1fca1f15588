"""Tokenize act-delimited screenplay text into narration and dialogue elements."""

import re
from dataclasses import dataclass

from audio_movie.models import ScriptElement
from audio_movie.constants import ACTS, CUE_MAX_LENGTH, DEFAULT_ACT, NARRATOR

_ACT_NUMBERS = {"1": "ONE", "2": "TWO", "3": "THREE"}

# **ACT ONE**, **ACT TWO - CONFRONTATION**, ACT 3
_ACT_RE = re.compile(r"^\*{0,2}\s*ACT\s+(ONE|TWO|THREE|[123])\b[^*]*\*{0,2}\s*:?\s*$")

_SLUG_RE = re.compile(r"^(INT\.|EXT\.|INT\./EXT\.|INT/EXT|I/E\b)", re.IGNORECASE)
# Transitions must be upper case so prose like "Cut to the chase" stays narration
_TRANSITION_RE = re.compile(r"^(FADE (IN|OUT|TO)\b|CUT TO\b|DISSOLVE( TO)?\b|SMASH CUT\b|MATCH CUT\b)")

# SARAH, DR. CHEN, JOHN (male), MARCUS (V.O.):
_CUE_RE = re.compile(r"^(?P<name>[A-Z][A-Z .]*[A-Z.])\s*(?P<paren>\([^)]*\))?\s*:?$")

_PAREN_ONLY_RE = re.compile(r"^\(.*\)$")
_PAREN_RE = re.compile(r"\([^)]*\)")
_DOUBLE_QUOTES = "\"“”"


@dataclass(frozen=True)
class ActMarker:
    act: str


@dataclass(frozen=True)
class CharacterCue:
    name: str
    parenthetical: str = ""


@dataclass(frozen=True)
class SceneHeading:
    text: str
    is_transition: bool = False


@dataclass(frozen=True)
class PlainText:
    text: str


LineKind = ActMarker | CharacterCue | SceneHeading | PlainText


def classify_line(line: str) -> LineKind:
    """Classify one stripped screenplay line.

    Scene headings are tested before cues so "INT. OFFICE" or "FADE IN:"
    never become speakers.
    """
    match = _ACT_RE.match(line)
    if match:
        label = match.group(1)
        return ActMarker(act=_ACT_NUMBERS.get(label, label))

    if _SLUG_RE.match(line):
        return SceneHeading(text=line)
    if _TRANSITION_RE.match(line):
        return SceneHeading(text=line, is_transition=True)

    match = _CUE_RE.match(line)
    if match and len(line) < CUE_MAX_LENGTH:
        paren = match.group("paren") or ""
        return CharacterCue(name=match.group("name").strip(), parenthetical=paren.strip("() "))

    return PlainText(text=line)


def _strip_quotes(text: str) -> str:
    text = text.strip(_DOUBLE_QUOTES).strip()
    if len(text) >= 2 and text[0] == "'" and text[-1] == "'":
        text = text[1:-1].strip()
    return text


def clean_dialogue(line: str) -> str:
    """Remove parentheticals and surrounding quotes from a dialogue line.

    A line that is entirely a parenthetical, like "(beat)", cleans to "".
    """
    if _PAREN_ONLY_RE.match(line):
        return ""
    text = " ".join(_PAREN_RE.sub(" ", line).split())
    return _strip_quotes(text)


class ScriptTokenizer:
    """Single forward pass over screenplay lines.

    Narration and dialogue accumulate in separate buffers; entering one
    always flushes the other, so at most one is ever pending. Each flush
    takes the next sequence number and the act current at that moment.
    """

    def __init__(
        self,
        narrator: str = NARRATOR,
        skip_scene_headings: bool = False,
        skip_transitions: bool = False,
    ):
        self.narrator = narrator
        self.skip_scene_headings = skip_scene_headings
        self.skip_transitions = skip_transitions
        self.act = DEFAULT_ACT
        self.character: str | None = None
        self.elements: list[ScriptElement] = []
        self._narration: list[str] = []
        self._dialogue: list[str] = []

    @property
    def pending_blocks(self) -> int:
        """Number of non-empty accumulators (never more than one)."""
        return int(bool(self._narration)) + int(bool(self._dialogue))

    def _emit(self, character: str, text: str, kind: str) -> None:
        self.elements.append(ScriptElement(
            character=character,
            text=text,
            kind=kind,
            act=self.act,
            sequence=len(self.elements),
        ))

    def _flush_narration(self) -> None:
        if self._narration:
            self._emit(self.narrator, " ".join(self._narration), "narration")
            self._narration = []

    def _flush_dialogue(self) -> None:
        if self.character and self._dialogue:
            self._emit(self.character, " ".join(self._dialogue), "dialogue")
        self._dialogue = []

    def _flush(self) -> None:
        self._flush_narration()
        self._flush_dialogue()

    def feed(self, line: str) -> None:
        """Consume one raw line of screenplay text."""
        stripped = line.strip()
        if not stripped:
            return

        kind = classify_line(stripped)

        if isinstance(kind, ActMarker):
            self._flush()
            self.character = None
            if kind.act in ACTS:
                self.act = kind.act
            return

        if isinstance(kind, CharacterCue):
            self._flush()
            if kind.name.upper() == self.narrator.upper():
                self.character = None
            else:
                self.character = kind.name
            return

        if isinstance(kind, SceneHeading):
            # Under an active speaker a heading is not spoken and the speech continues
            if self.character:
                return
            suppressed = self.skip_transitions if kind.is_transition else self.skip_scene_headings
            if not suppressed:
                self._flush_narration()
                self._emit(self.narrator, kind.text, "scene-heading")
            return

        if self.character:
            cleaned = clean_dialogue(stripped)
            if cleaned:
                self._dialogue.append(cleaned)
        else:
            self._narration.append(stripped)

    def close(self) -> list[ScriptElement]:
        """Flush whatever is still open and return all elements."""
        self._flush()
        return self.elements


def tokenize_script(
    text: str | None,
    skip_scene_headings: bool = False,
    skip_transitions: bool = False,
    narrator: str = NARRATOR,
) -> list[ScriptElement]:
    """Parse screenplay text into ordered ScriptElements."""
    tokenizer = ScriptTokenizer(
        narrator=narrator,
        skip_scene_headings=skip_scene_headings,
        skip_transitions=skip_transitions,
    )
    for line in (text or "").split("\n"):
        tokenizer.feed(line)
    return tokenizer.close()


def discover_characters(elements: list[ScriptElement], narrator: str = NARRATOR) -> list[str]:
    """Distinct dialogue speakers in order of first appearance."""
    seen = []
    for element in elements:
        if element.kind != "dialogue" or element.character.upper() == narrator.upper():
            continue
        if element.character not in seen:
            seen.append(element.character)
    return seen
