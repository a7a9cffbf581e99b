from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RotationState:
    """Subject-object rotation in radians."""

    yaw: float = 0.0
    pitch: float = 0.0


class AnimationClock:
    """
    Spins the subject object: yaw += yaw_rate*dt and pitch += pitch_rate*dt per tick,
    unless paused. Knows nothing about cameras or viewports.
    """

    def __init__(self, yaw_rate: float = 0.2, pitch_rate: float = 0.1, state: RotationState | None = None) -> None:
        self.yaw_rate = float(yaw_rate)
        self.pitch_rate = float(pitch_rate)
        self._state = state if state is not None else RotationState()

    @property
    def state(self) -> RotationState:
        return self._state

    def tick(self, dt: float, paused: bool = False) -> RotationState:
        dt = max(0.0, float(dt))
        if paused or dt == 0.0:
            return self._state
        self._state = RotationState(
            yaw=self._state.yaw + self.yaw_rate * dt,
            pitch=self._state.pitch + self.pitch_rate * dt,
        )
        return self._state

    def reset(self) -> RotationState:
        self._state = RotationState()
        return self._state
