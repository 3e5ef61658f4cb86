"""
Core data models for the Times Table Quiz.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


QUESTIONS_PER_ROUND = 10


@dataclass
class Question:
    """A single multiple-choice multiplication question."""
    multiplier: int
    multiplicand: int
    correct_answer: int
    options: List[int] = field(default_factory=list)

    @property
    def text(self) -> str:
        return f"{self.multiplier} × {self.multiplicand} = ?"

    def is_correct(self, value: int) -> bool:
        return value == self.correct_answer


@dataclass
class RoundSettings:
    """Timing configuration for a single round."""
    feedback_delay: float = 1.5
    tick_interval: float = 1.0
    question_count: int = QUESTIONS_PER_ROUND


@dataclass
class AudioSettings:
    """Audio preferences, persisted through a key-value store."""
    sound_muted: bool = False
    music_muted: bool = False
    music_volume: float = 0.3

    def to_dict(self) -> Dict[str, Any]:
        return {
            "soundMuted": self.sound_muted,
            "musicMuted": self.music_muted,
            "musicVolume": self.music_volume,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AudioSettings":
        def _as_bool(value: object) -> bool:
            if isinstance(value, str):
                return value.strip().lower() == "true"
            return bool(value)

        try:
            volume = float(payload.get("musicVolume", 0.3))
        except (TypeError, ValueError):
            volume = 0.3
        return cls(
            sound_muted=_as_bool(payload.get("soundMuted", False)),
            music_muted=_as_bool(payload.get("musicMuted", False)),
            music_volume=min(max(volume, 0.0), 1.0),
        )


@dataclass
class ScoreData:
    """Payload sent to the score service when a round finishes."""
    score: int
    table: int
    total_time: int

    def to_payload(self) -> Dict[str, int]:
        return {"score": self.score, "table": self.table, "totalTime": self.total_time}


@dataclass
class RoundResult:
    """Final tally of a finished round."""
    table: int
    score: int
    total_time: int
    questions_answered: int
    reason: str
    saved: Optional[bool] = None

    @property
    def is_perfect(self) -> bool:
        return self.score == QUESTIONS_PER_ROUND

    def to_score_payload(self) -> Dict[str, int]:
        return ScoreData(self.score, self.table, self.total_time).to_payload()


@dataclass
class User:
    """Signed-in player as known to the score service."""
    id: str
    username: str


@dataclass
class AuthSession:
    """Access token and user for the current player."""
    access_token: str
    user: User

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "user": {"id": self.user.id, "username": self.user.username},
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> Optional["AuthSession"]:
        token = payload.get("access_token")
        user = payload.get("user")
        if not token or not isinstance(user, dict):
            return None
        if not user.get("id") or not user.get("username"):
            return None
        return cls(access_token=str(token), user=User(str(user["id"]), str(user["username"])))


@dataclass
class GameScore:
    """A stored score as returned by the leaderboard endpoints."""
    id: str
    user_id: str
    username: str
    score: int
    table: int
    total_time: int
    date: str

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GameScore":
        return cls(
            id=str(payload.get("id", "")),
            user_id=str(payload.get("user_id", "")),
            username=str(payload.get("username", "")),
            score=int(payload.get("score", 0)),
            table=int(payload.get("table", 0)),
            total_time=int(payload.get("total_time", 0)),
            date=str(payload.get("date", "")),
        )
