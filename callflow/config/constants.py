"""Flow execution constants - timing and protocol defaults.

All timing values in milliseconds unless otherwise noted.
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class FlowConstants:
    """Immutable flow execution defaults."""

    # Auto-continuation delays
    SAY_CONTINUE_DELAY_MS: Final[int] = 2000  # Let playback begin before advancing
    DECISION_CONTINUE_DELAY_MS: Final[int] = 500
    END_HANGUP_DELAY_MS: Final[int] = 3000  # Let the final prompt play out

    # Gateway calls
    GATEWAY_TIMEOUT_S: Final[float] = 10.0

    # Speech defaults
    DEFAULT_VOICE_ID: Final[str] = "en-US-AriaNeural"
    DEFAULT_VOICE_TIER: Final[str] = "standard"
    PREMIUM_VOICE_TIER: Final[str] = "premium"
    PREMIUM_TTS_PROVIDER: Final[str] = "elevenlabs"
    STANDARD_TTS_PROVIDER: Final[str] = "azure"
    RECOGNITION_LANGUAGE: Final[str] = "en-US"

    # Session defaults
    MAX_CONCURRENT_CALLS: Final[int] = 100
    FAILURE_HISTORY_SIZE: Final[int] = 100


# Singleton instance for import
FLOW = FlowConstants()
