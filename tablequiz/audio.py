"""
Audio notifications for game events.
The actual sound output is delegated to a pluggable player.
"""
import logging
from enum import Enum
from typing import Callable, Optional

from .models import AudioSettings
from .preferences import SettingsStore

logger = logging.getLogger(__name__)


class AudioEvent(Enum):
    """Sound cues raised by the game."""
    CORRECT_ANSWER = "correct_answer"
    WRONG_ANSWER = "wrong_answer"
    ROUND_START = "round_start"
    ROUND_OVER = "round_over"
    PERFECT_SCORE = "perfect_score"
    CLICK = "click"
    LEVEL_SELECT = "level_select"
    MUSIC_START = "music_start"
    MUSIC_STOP = "music_stop"


def log_player(event: AudioEvent, volume: float) -> None:
    logger.debug(f"Audio cue {event.value} at volume {volume:.2f}")


class AudioManager:
    """Fire-and-forget audio collaborator that honours mute preferences."""

    EFFECT_VOLUME = 0.3

    def __init__(self, settings_store: Optional[SettingsStore] = None,
                 player: Optional[Callable[[AudioEvent, float], None]] = None):
        self.settings_store = settings_store
        self.settings = settings_store.load() if settings_store else AudioSettings()
        self.player = player or log_player
        self._music_playing = False

    def play(self, event: AudioEvent) -> None:
        """Play a sound effect unless effects are muted."""
        if self.settings.sound_muted:
            return
        self._dispatch(event, self.EFFECT_VOLUME)

    def start_background_music(self) -> None:
        if self._music_playing or self.settings.music_muted:
            return
        self._music_playing = True
        self._dispatch(AudioEvent.MUSIC_START, self.settings.music_volume)

    def stop_background_music(self) -> None:
        if not self._music_playing:
            return
        self._music_playing = False
        self._dispatch(AudioEvent.MUSIC_STOP, 0.0)

    @property
    def is_music_playing(self) -> bool:
        return self._music_playing

    def toggle_sound_mute(self) -> bool:
        self.settings.sound_muted = not self.settings.sound_muted
        self._save()
        logger.info(f"Sound effects {'muted' if self.settings.sound_muted else 'unmuted'}")
        return self.settings.sound_muted

    def toggle_music_mute(self) -> bool:
        self.settings.music_muted = not self.settings.music_muted
        if self.settings.music_muted:
            self.stop_background_music()
        self._save()
        logger.info(f"Music {'muted' if self.settings.music_muted else 'unmuted'}")
        return self.settings.music_muted

    def set_music_volume(self, volume: float) -> float:
        self.settings.music_volume = min(max(float(volume), 0.0), 1.0)
        self._save()
        return self.settings.music_volume

    def _save(self) -> None:
        if self.settings_store is not None:
            self.settings_store.save(self.settings)

    def _dispatch(self, event: AudioEvent, volume: float) -> None:
        try:
            self.player(event, volume)
        except Exception as e:
            logger.error(f"Audio player failed for {event.value}: {e}")
