"""Parse the plot's CHARACTERS roster into genders and appearance order."""

import logging
import re
from dataclasses import dataclass, field

from audio_movie.models import RosterEntry

logger = logging.getLogger(__name__)

# Honorifics stripped when deriving name variants (compared without the period)
TITLES = frozenset({
    "DR", "MR", "MRS", "MS", "MISS", "MX", "NURSE", "OFFICER",
    "DETECTIVE", "PROFESSOR", "PROF", "CAPTAIN", "SIR", "LADY",
})

_SECTION_RE = re.compile(r"^\W*CHARACTERS\W*:?\W*$", re.IGNORECASE)
_SECTION_END_RE = re.compile(r"^(\*\*|#+\s|\*{0,2}\s*ACT\s+\w+)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-*•]\s*(?P<name>[^()]+?)\s*\((?P<gender>[^),]+)[^)]*\)")
_GENDERS = {"male": "male", "female": "female"}


def _is_title(token: str) -> bool:
    return token.rstrip(".").upper() in TITLES


def strip_title(name: str) -> str:
    """Drop one leading honorific: "DR. LIAM CHEN" → "LIAM CHEN"."""
    parts = name.split()
    if len(parts) > 1 and _is_title(parts[0]):
        return " ".join(parts[1:])
    return name


def first_name(name: str) -> str:
    """First token after any leading title."""
    parts = strip_title(name).split()
    return parts[0] if parts else ""


def name_variants(canonical: str) -> tuple[str, ...]:
    """Alternate lookup keys for a roster name, most specific first."""
    variants = []
    stripped = strip_title(canonical)
    if stripped != canonical:
        variants.append(stripped)
    first = first_name(canonical)
    if first and first not in (canonical, stripped) and not _is_title(first):
        variants.append(first)
    return tuple(variants)


@dataclass
class Roster:
    """Parsed roster: entries in appearance order plus a variant index."""

    entries: list[RosterEntry] = field(default_factory=list)
    index: dict[str, RosterEntry] = field(default_factory=dict)
    ambiguous: set[str] = field(default_factory=set)

    @property
    def gender_map(self) -> dict[str, str]:
        return {key: entry.gender for key, entry in self.index.items()}

    @property
    def main_male(self) -> RosterEntry | None:
        return next((e for e in self.entries if e.gender == "male"), None)

    @property
    def main_female(self) -> RosterEntry | None:
        return next((e for e in self.entries if e.gender == "female"), None)

    def to_dict(self) -> list[dict]:
        return [{"name": e.canonical_name, "gender": e.gender} for e in self.entries]

    @classmethod
    def from_dict(cls, data: list[dict]) -> "Roster":
        """Rebuild a roster from its serialized entry list."""
        roster = cls()
        for item in data or []:
            gender = _GENDERS.get(str(item.get("gender", "")).lower())
            name = str(item.get("name", "")).strip().upper()
            if gender and name:
                _add_entry(roster, name, gender)
        _finish_index(roster)
        return roster


def _add_entry(roster: Roster, name: str, gender: str) -> None:
    if name in roster.index and roster.index[name].canonical_name == name:
        return
    entry = RosterEntry(canonical_name=name, gender=gender, variants=name_variants(name))
    roster.entries.append(entry)
    roster.index[name] = entry


def _finish_index(roster: Roster) -> None:
    """Add variant keys; full names win, opposite-gender collisions are dropped."""
    full_names = {e.canonical_name for e in roster.entries}
    claims: dict[str, RosterEntry] = {}
    for entry in roster.entries:
        for variant in entry.variants:
            if variant in full_names or variant in roster.ambiguous:
                continue
            holder = claims.get(variant)
            if holder is None:
                claims[variant] = entry
            elif holder.gender != entry.gender:
                logger.warning(
                    "Name variant %r matches %s (%s) and %s (%s); ignoring it",
                    variant, holder.canonical_name, holder.gender,
                    entry.canonical_name, entry.gender,
                )
                roster.ambiguous.add(variant)
                del claims[variant]
    roster.index.update(claims)


def extract_roster(plot: str | None) -> Roster:
    """Parse the CHARACTERS section of a plot.

    Bullets look like ``- Dr. Liam Chen (male)``. A missing section, blank
    plot or malformed bullet is not an error; the roster is just smaller.
    """
    roster = Roster()
    if not plot:
        return roster

    in_section = False
    for line in plot.split("\n"):
        stripped = line.strip()
        if not in_section:
            in_section = bool(_SECTION_RE.match(stripped))
            continue
        if not stripped:
            continue
        if _SECTION_END_RE.match(stripped):
            break
        match = _BULLET_RE.match(stripped)
        if not match:
            continue
        gender = _GENDERS.get(match.group("gender").strip().lower())
        name = " ".join(match.group("name").split()).upper().strip("*: ")
        if not gender or not name:
            continue
        _add_entry(roster, name, gender)

    _finish_index(roster)
    if not roster.entries:
        logger.info("No CHARACTERS roster found in plot")
    return roster


class NameResolver:
    """Match script cue names against a roster.

    Strategies run in order and the first hit wins: the exact name, the
    name with a leading title removed, then the first name alone.
    """

    def __init__(self, roster: Roster):
        self.roster = roster

    def resolve(self, name: str) -> tuple[RosterEntry, str] | None:
        """Return the matching entry and the strategy that found it."""
        key = " ".join(name.split()).upper()
        for candidate in (key, strip_title(key), first_name(key)):
            entry = self.roster.index.get(candidate) if candidate else None
            if entry is None:
                continue
            if candidate == entry.canonical_name:
                return entry, "exact"
            if candidate == strip_title(entry.canonical_name):
                return entry, "title-stripped"
            return entry, "first-name"
        return None

    def gender_of(self, name: str) -> str | None:
        hit = self.resolve(name)
        return hit[0].gender if hit else None
