"""Provider voice tables and deterministic character casting."""

import json
import logging
import os
from dataclasses import dataclass, field

from audio_movie.models import RosterEntry, VoiceProfile
from audio_movie.constants import NARRATOR
from audio_movie.roster import NameResolver, Roster, first_name, strip_title

logger = logging.getLogger(__name__)

VoiceAssignment = dict[str, VoiceProfile]


@dataclass(frozen=True)
class VoiceTable:
    """Voices one speech provider offers to the caster.

    Main voices are optional: a provider without them casts every
    character from the supporting pools.
    """

    narrator: VoiceProfile
    supporting_female: tuple[str, ...]
    supporting_male: tuple[str, ...]
    main_male: VoiceProfile | None = None
    main_female: VoiceProfile | None = None
    fixed_voice: bool = False  # provider ignores voice selection entirely
    rate: str = "+0%"
    pitch: str = "+0Hz"

    def __post_init__(self):
        if not self.supporting_female or not self.supporting_male:
            raise ValueError("Supporting voice pools must not be empty")

    @property
    def combined_pool(self) -> tuple[str, ...]:
        return self.supporting_female + self.supporting_male

    def known_voices(self) -> list[str]:
        voices = [self.narrator.voice_id]
        for main in (self.main_male, self.main_female):
            if main:
                voices.append(main.voice_id)
        for voice in self.combined_pool:
            if voice not in voices:
                voices.append(voice)
        return voices

    def profile(self, voice_id: str, source: str) -> VoiceProfile:
        return VoiceProfile(voice_id=voice_id, rate=self.rate, pitch=self.pitch, source=source)


PROVIDER_VOICES = {
    # Voice names resolve to ElevenLabs voice IDs inside the provider
    "elevenlabs": VoiceTable(
        narrator=VoiceProfile("john", source="narrator"),
        main_male=VoiceProfile("nigel", source="main-male"),
        main_female=VoiceProfile("rachel", source="main-female"),
        supporting_female=("bella", "elli", "domi", "dorothy"),
        supporting_male=("adam", "antoni", "arnold", "josh", "sam"),
    ),
    "edge": VoiceTable(
        narrator=VoiceProfile("en-US-RogerNeural", rate="-15%", pitch="-10Hz", source="narrator"),
        main_male=VoiceProfile("en-GB-RyanNeural", rate="-5%", pitch="-4Hz", source="main-male"),
        main_female=VoiceProfile("en-US-AriaNeural", source="main-female"),
        supporting_female=(
            "en-GB-SoniaNeural",
            "en-AU-NatashaNeural",
            "en-IN-NeerjaNeural",
            "en-IE-EmilyNeural",
        ),
        supporting_male=(
            "en-IN-PrabhatNeural",
            "en-AU-WilliamNeural",
            "en-CA-LiamNeural",
            "en-GB-ThomasNeural",
            "en-US-DavisNeural",
        ),
    ),
    "gtts": VoiceTable(
        narrator=VoiceProfile("en", source="narrator"),
        supporting_female=("en",),
        supporting_male=("en",),
        fixed_voice=True,
    ),
}

FEMALE_NAMES = frozenset({
    "SARAH", "EMILY", "EMMA", "ANNA", "LUCY", "OLIVIA", "AVA", "MIA", "SOPHIA",
    "ISABELLA", "CHARLOTTE", "RACHEL", "BELLA", "ELLI", "AMELIA", "GRACE", "ELLA",
    "LILY", "JESSICA", "JENNIFER", "LISA", "MICHELLE", "AMANDA", "STEPHANIE",
    "NICOLE", "HANNAH", "MADISON", "CHLOE", "MARY", "ELIZABETH", "KATE", "CLAIRE",
    "ZOE", "RUTH", "HELEN", "ALICE", "EVE", "JANE", "MARGARET", "SUSAN",
})

MALE_NAMES = frozenset({
    "JOHN", "JACK", "JAMES", "MIKE", "MICHAEL", "MARCUS", "ADAM", "ANTONI", "ARNOLD",
    "HENRY", "WILLIAM", "LIAM", "NOAH", "SAM", "JOSH", "SCOTT", "DAVID", "ROBERT",
    "DANIEL", "MATTHEW", "JOSEPH", "ANDREW", "RYAN", "CHRISTOPHER", "BRIAN", "KEVIN",
    "THOMAS", "JASON", "BRANDON", "ERIC", "TYLER", "JUSTIN", "BENJAMIN", "JACOB",
    "ALEXANDER", "NATHAN", "JONATHAN", "LUKE", "MARK", "PAUL", "PETER", "STEVEN",
    "PATRICK", "SEAN", "KYLE", "DEREK", "CHAD", "TRAVIS", "CONNOR", "ETHAN", "OLIVER",
    "SEBASTIAN", "OWEN", "CALEB", "DYLAN", "LUCAS", "MASON", "LOGAN", "CARTER",
    "JACKSON", "HUNTER", "AARON", "GABRIEL", "JULIAN", "WYATT", "ISAAC", "CHARLES",
    "GEORGE", "FRANK", "RICHARD", "ANTHONY", "DONALD", "KENNETH", "GARY", "LARRY",
    "TERRY", "JERRY", "DENNIS", "WAYNE", "RANDY", "GREGORY", "RONALD", "TIMOTHY",
    "EDWARD", "JEFFREY", "LAWRENCE",
})


def guess_gender(name: str, resolver: NameResolver | None = None) -> tuple[str, str]:
    """Return (gender, source) for a script name.

    Roster match first, then the first-name tables, then a trailing-"A"
    heuristic. Anything else is "unknown" rather than a guess.
    """
    if resolver is not None:
        hit = resolver.resolve(name)
        if hit:
            entry, strategy = hit
            return entry.gender, f"roster:{strategy}"

    first = first_name(name.upper().split("(")[0].strip())
    if first in FEMALE_NAMES:
        return "female", "name-list"
    if first in MALE_NAMES:
        return "male", "name-list"
    if len(first) > 1 and first.endswith("A"):
        return "female", "name-pattern"
    return "unknown", "none"


def matches_main(name: str, entry: RosterEntry | None) -> bool:
    """True if a script name refers to a main roster character.

    Accepts the roster name itself, its first name, or the name without
    a leading title.
    """
    if entry is None:
        return False
    up = " ".join(name.split()).upper()
    canonical = entry.canonical_name
    return up in (canonical, first_name(canonical), strip_title(canonical))


@dataclass
class _Rotation:
    female: int = 0
    male: int = 0
    unknown: int = 0
    assigned: set = field(default_factory=set)


def resolve_voices(
    characters: list[str],
    roster: Roster | None = None,
    overrides: dict[str, str] | None = None,
    provider: str = "edge",
    narrator: str = NARRATOR,
) -> VoiceAssignment:
    """Cast one voice per character for a provider.

    Characters are cast in the order given (script discovery order), so
    the same inputs always produce the same assignment. Overrides are
    matched case-insensitively and always win.
    """
    table = PROVIDER_VOICES[provider]
    roster = roster or Roster()
    resolver = NameResolver(roster)
    wanted = {k.upper(): v for k, v in (overrides or {}).items() if v}
    if table.fixed_voice:
        wanted = {}

    assignment: VoiceAssignment = {}
    narrator_override = wanted.get(narrator.upper())
    if narrator_override:
        assignment[narrator] = VoiceProfile(
            narrator_override, table.narrator.rate, table.narrator.pitch, "override",
        )
    else:
        assignment[narrator] = table.narrator

    main_male = roster.main_male
    main_female = roster.main_female
    state = _Rotation()

    for name in characters:
        if name.upper() == narrator.upper() or name in assignment:
            continue

        gender, source = guess_gender(name, resolver)
        if gender == "unknown":
            logger.warning("No gender found for %s; casting from mixed pool", name)

        if gender == "male" and table.main_male and "male" not in state.assigned \
                and matches_main(name, main_male):
            profile = table.main_male
            state.assigned.add("male")
        elif gender == "female" and table.main_female and "female" not in state.assigned \
                and matches_main(name, main_female):
            profile = table.main_female
            state.assigned.add("female")
        elif gender == "female":
            pool = table.supporting_female
            profile = table.profile(pool[state.female % len(pool)], "supporting-female")
            state.female += 1
        elif gender == "male":
            pool = table.supporting_male
            profile = table.profile(pool[state.male % len(pool)], "supporting-male")
            state.male += 1
        else:
            pool = table.combined_pool
            profile = table.profile(pool[state.unknown % len(pool)], "unknown")
            state.unknown += 1

        override = wanted.get(name.upper())
        if override:
            profile = VoiceProfile(override, profile.rate, profile.pitch, "override")

        logger.debug("Cast %s (%s via %s) → %s", name, gender, source, profile.voice_id)
        assignment[name] = profile

    return assignment


def resolve_cast(
    characters: list[str],
    roster: Roster | None = None,
    overrides: dict[str, str] | None = None,
    providers: list[str] | None = None,
    narrator: str = NARRATOR,
) -> dict[str, VoiceAssignment]:
    """Resolve one assignment per provider in a fallback chain."""
    providers = providers or list(PROVIDER_VOICES)
    return {
        name: resolve_voices(characters, roster, overrides, provider=name, narrator=narrator)
        for name in providers
    }


def assignment_to_dict(assignment: VoiceAssignment) -> dict:
    return {
        name: {"voice": p.voice_id, "rate": p.rate, "pitch": p.pitch, "source": p.source}
        for name, p in assignment.items()
    }


def load_cast(script_path: str) -> dict:
    """Load .cast.json sidecar file if it exists.

    Returns cast dict or empty dict if not found or malformed.
    """
    base = os.path.splitext(script_path)[0]
    cast_path = base + ".cast.json"
    if not os.path.exists(cast_path):
        return {}
    try:
        with open(cast_path) as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed cast file: %s, using computed voices", cast_path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Cast file %s is not an object, ignoring it", cast_path)
        return {}
    return data


def overrides_from_cast(cast: dict, narrator: str = NARRATOR) -> dict[str, str]:
    """Flatten cast data into a character → voice override mapping.

    Accepts both ``{"cast": {"SARAH": {"voice": "bella"}}}`` and the
    shorthand ``{"cast": {"SARAH": "bella"}}``.
    """
    overrides = {}
    narrator_info = cast.get("narrator") or {}
    if isinstance(narrator_info, str):
        overrides[narrator.upper()] = narrator_info
    elif narrator_info.get("voice"):
        overrides[narrator.upper()] = narrator_info["voice"]

    for name, info in (cast.get("cast") or {}).items():
        voice = info if isinstance(info, str) else (info or {}).get("voice")
        if voice:
            overrides[name.upper()] = voice
    return overrides
