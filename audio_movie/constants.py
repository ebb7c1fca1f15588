"""All magic numbers and configuration constants."""

NARRATOR = "NARRATOR"                        # narrator sentinel used for narration and scene headings
ACTS = ("ONE", "TWO", "THREE")
DEFAULT_ACT = "ONE"
CUE_MAX_LENGTH = 50                          # chars; longer all-caps lines are never cues

ELEVENLABS_MAX_CHARS = 4500                  # per-request safe input length
EDGE_MAX_CHARS = 3000
GTTS_MAX_CHARS = 200                         # Translate TTS rejects long queries
GTTS_REQUEST_DELAY = 0.25                    # seconds between free-provider requests
ELEVENLABS_MODEL = "eleven_monolingual_v1"
ELEVENLABS_TIMEOUT = 30                      # seconds
TTS_RETRY_COUNT = 3                          # max retries per Edge request
TTS_RETRY_BASE_DELAY = 1.0                   # seconds, base delay for exponential backoff
DISPATCH_CONCURRENCY = 4                     # elements synthesized at once
AUDIO_FORMAT = "mp3"

USAGE_LIMIT = 10000                          # metered chars per month (free tier)
USAGE_LOG_SIZE = 100                         # recent requests kept in the ledger
USAGE_WARN_PERCENT = 75
USAGE_CRITICAL_PERCENT = 90
CHARS_PER_AUDIO_MINUTE = 600

PAUSE_SAME_TYPE_MS = 225                     # ms pause between same-type clips
PAUSE_SPEAKER_CHANGE_MS = 375                # ms pause at speaker changes
PAUSE_TYPE_TRANSITION_MS = 525               # ms pause at narration/dialogue transitions
DEFAULT_ACT_SECONDS = 30                     # act image duration when an act has no audio

OUTPUT_DIR = "output"
USAGE_FILE = "tts-usage.json"
VOICE_SUBDIR = "voice"
ACTS_SUBDIR = "acts"
VERSION = "0.1.0"
