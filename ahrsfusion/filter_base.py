"""State bookkeeping shared by the localisation filters."""

from __future__ import annotations

import abc
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TextIO

import numpy as np

from .filter_utilities import clamp_rotation, format_matrix, format_vector

__all__ = [
    "STATE_SIZE",
    "TWIST_SIZE",
    "POSITION_OFFSET",
    "POSITION_V_OFFSET",
    "StateMember",
    "ControlMember",
    "Measurement",
    "FilterBase",
]

STATE_SIZE = 15
TWIST_SIZE = 6
POSITION_OFFSET = 0
POSITION_V_OFFSET = 6

_LARGE_DELTA = 100000.0


class StateMember(IntEnum):
    """Index of each variable in the state vector."""

    X = 0
    Y = 1
    Z = 2
    ROLL = 3
    PITCH = 4
    YAW = 5
    VX = 6
    VY = 7
    VZ = 8
    VROLL = 9
    VPITCH = 10
    VYAW = 11
    AX = 12
    AY = 13
    AZ = 14


class ControlMember(IntEnum):
    """Index of each variable in the control vector."""

    VX = 0
    VY = 1
    VZ = 2
    VROLL = 3
    VPITCH = 4
    VYAW = 5


@dataclass
class Measurement:
    """A sensor reading with its covariance and the variables it updates."""

    measurement: np.ndarray
    covariance: np.ndarray
    update_vector: Sequence[int]
    time: float = 0.0
    topic_name: str = ""
    mahalanobis_thresh: float = math.inf
    latest_control: np.ndarray = field(default_factory=lambda: np.zeros(TWIST_SIZE))
    latest_control_time: float = 0.0

    def __post_init__(self) -> None:
        self.measurement = np.asarray(self.measurement, dtype=float)
        self.covariance = np.asarray(self.covariance, dtype=float)
        self.update_vector = list(self.update_vector)

    def __lt__(self, other: "Measurement") -> bool:
        return self.time < other.time


_DEFAULT_PROCESS_NOISE = {
    StateMember.X: 0.05,
    StateMember.Y: 0.05,
    StateMember.Z: 0.06,
    StateMember.ROLL: 0.03,
    StateMember.PITCH: 0.03,
    StateMember.YAW: 0.06,
    StateMember.VX: 0.025,
    StateMember.VY: 0.025,
    StateMember.VZ: 0.04,
    StateMember.VROLL: 0.01,
    StateMember.VPITCH: 0.01,
    StateMember.VYAW: 0.02,
    StateMember.AX: 0.01,
    StateMember.AY: 0.01,
    StateMember.AZ: 0.015,
}


def _compute_control_acceleration(
    state: float,
    control: float,
    acceleration_limit: float,
    acceleration_gain: float,
    deceleration_limit: float,
    deceleration_gain: float,
) -> float:
    error = control - state
    same_sign = abs(error) <= abs(control) + 0.01
    set_point = control if same_sign else 0.0
    decelerating = abs(set_point) < abs(state)
    limit, gain = (
        (deceleration_limit, deceleration_gain)
        if decelerating
        else (acceleration_limit, acceleration_gain)
    )
    return min(max(gain * error, -limit), limit)


class FilterBase(abc.ABC):
    """Common state, covariance and measurement handling for a filter.

    Subclasses supply :meth:`predict` and :meth:`correct`.
    """

    def __init__(self) -> None:
        self.use_control = False
        self.use_dynamic_process_noise_covariance = False
        self.latest_control_time = 0.0
        self.control_timeout = 0.0
        self.control_update_vector: list[int] = [0] * TWIST_SIZE
        self.acceleration_gains: list[float] = [0.0] * TWIST_SIZE
        self.acceleration_limits: list[float] = [0.0] * TWIST_SIZE
        self.deceleration_gains: list[float] = [0.0] * TWIST_SIZE
        self.deceleration_limits: list[float] = [0.0] * TWIST_SIZE
        self.latest_control = np.zeros(TWIST_SIZE)
        self.debug = False
        self._debug_stream: TextIO | None = None
        self.reset()

    def reset(self) -> None:
        """Return state, covariances and timing to their start-up values."""
        self.initialized = False
        self.state = np.zeros(STATE_SIZE)
        self.predicted_state = np.zeros(STATE_SIZE)
        self.control_acceleration = np.zeros(TWIST_SIZE)
        self.transfer_function = np.eye(STATE_SIZE)
        self.transfer_function_jacobian = np.zeros((STATE_SIZE, STATE_SIZE))
        self.estimate_error_covariance = np.eye(STATE_SIZE) * 1e-9
        self.identity = np.eye(STATE_SIZE)
        self.covariance_epsilon = np.eye(STATE_SIZE) * 0.001
        self.sensor_timeout = 0.033333333
        self.last_measurement_time = 0.0
        noise = np.zeros((STATE_SIZE, STATE_SIZE))
        for member, value in _DEFAULT_PROCESS_NOISE.items():
            noise[member, member] = value
        self.set_process_noise_covariance(noise)

    @property
    def process_noise_covariance(self) -> np.ndarray:
        return self._process_noise_covariance

    @process_noise_covariance.setter
    def process_noise_covariance(self, covariance: np.ndarray) -> None:
        self.set_process_noise_covariance(covariance)

    def set_process_noise_covariance(self, covariance: np.ndarray) -> None:
        """Replace the process noise covariance and its dynamic copy."""
        self._process_noise_covariance = np.array(covariance, dtype=float)
        self.dynamic_process_noise_covariance = self._process_noise_covariance.copy()

    def compute_dynamic_process_noise_covariance(self, state: np.ndarray, delta: float) -> None:
        """Scale the pose block of the process noise by the velocity magnitude."""
        state = np.asarray(state, dtype=float)
        speed = np.linalg.norm(state[POSITION_V_OFFSET:POSITION_V_OFFSET + TWIST_SIZE])
        velocity = np.eye(TWIST_SIZE) * speed
        block = slice(POSITION_OFFSET, POSITION_OFFSET + TWIST_SIZE)
        self.dynamic_process_noise_covariance[block, block] = (
            velocity @ self._process_noise_covariance[block, block] @ velocity.T
        )

    def process_measurement(self, measurement: Measurement) -> None:
        """Run the predict/correct cycle, or initialise from the first measurement."""
        self._debug(f"------ FilterBase::processMeasurement ({measurement.topic_name}) ------\n")
        delta = 0.0
        if self.initialized:
            delta = measurement.time - self.last_measurement_time
            self._debug(
                f"Filter is already initialized. Carrying out predict/correct loop...\n"
                f"Measurement time is {measurement.time:.20g}, last measurement time is "
                f"{self.last_measurement_time}, delta is {delta}\n"
            )
            if delta > 0:
                delta = self.validate_delta(delta)
                self.predict(measurement.time, delta)
                self.predicted_state = self.state.copy()
            self.correct(measurement)
        else:
            self._debug("First measurement. Initializing filter.\n")
            mask = np.asarray(measurement.update_vector, dtype=bool)
            size = mask.size
            values = measurement.measurement[:size]
            self.state[:size][mask] = values[mask]
            indices = np.flatnonzero(mask)
            self.estimate_error_covariance[np.ix_(indices, indices)] = (
                measurement.covariance[np.ix_(indices, indices)]
            )
            self.initialized = True
        if delta >= 0.0:
            self.last_measurement_time = measurement.time
        self._debug(f"------ /FilterBase::processMeasurement ({measurement.topic_name}) ------\n")

    def set_control(self, control: Sequence[float], control_time: float) -> None:
        """Record the latest control input and its time."""
        self.latest_control = np.array(control, dtype=float)
        self.latest_control_time = control_time

    def set_control_params(
        self,
        update_vector: Sequence[int],
        control_timeout: float,
        acceleration_limits: Sequence[float],
        acceleration_gains: Sequence[float],
        deceleration_limits: Sequence[float],
        deceleration_gains: Sequence[float],
    ) -> None:
        """Enable control input with its limits and gains."""
        self.use_control = True
        self.control_update_vector = list(update_vector)
        self.control_timeout = control_timeout
        self.acceleration_limits = list(acceleration_limits)
        self.acceleration_gains = list(acceleration_gains)
        self.deceleration_limits = list(deceleration_limits)
        self.deceleration_gains = list(deceleration_gains)

    def set_debug(self, debug: bool, out_stream: TextIO | None = None) -> None:
        """Turn debug output on, to out_stream; without a stream it stays off."""
        if debug and out_stream is not None:
            self._debug_stream = out_stream
            self.debug = True
        else:
            self.debug = False

    def validate_delta(self, delta: float) -> float:
        """Return delta, replaced by 0.01 when it is implausibly large."""
        if delta > _LARGE_DELTA:
            self._debug("Delta was very large. Suspect playing from bag file. Setting to 0.01\n")
            return 0.01
        return delta

    def prepare_control(self, reference_time: float, prediction_delta: float) -> None:
        """Compute the control accelerations to apply in the next prediction."""
        self.control_acceleration = np.zeros(TWIST_SIZE)
        if not self.use_control:
            return
        timed_out = abs(reference_time - self.latest_control_time) >= self.control_timeout
        if timed_out:
            self._debug(
                f"Control timed out. Reference time was {reference_time}, latest control time was "
                f"{self.latest_control_time}, control timeout was {self.control_timeout}\n"
            )
        for index, enabled in enumerate(self.control_update_vector[:TWIST_SIZE]):
            if not enabled:
                continue
            self.control_acceleration[index] = _compute_control_acceleration(
                float(self.state[index + POSITION_V_OFFSET]),
                0.0 if timed_out else float(self.latest_control[index]),
                self.acceleration_limits[index],
                self.acceleration_gains[index],
                self.deceleration_limits[index],
                self.deceleration_gains[index],
            )

    def wrap_state_angles(self) -> None:
        """Wrap roll, pitch and yaw into [-pi, pi]."""
        for member in (StateMember.ROLL, StateMember.PITCH, StateMember.YAW):
            self.state[member] = clamp_rotation(float(self.state[member]))

    def check_mahalanobis_threshold(
        self, innovation: np.ndarray, inv_covariance: np.ndarray, nsigmas: float
    ) -> bool:
        """True when the innovation lies within nsigmas Mahalanobis distance."""
        innovation = np.asarray(innovation, dtype=float)
        sq_mahalanobis = float(innovation @ (np.asarray(inv_covariance, dtype=float) @ innovation))
        threshold = nsigmas * nsigmas
        if sq_mahalanobis >= threshold:
            self._debug(
                f"Innovation mahalanobis distance test failed. Squared Mahalanobis is: {sq_mahalanobis}\n"
                f"Threshold is: {threshold}\n"
                f"Innovation is: {format_vector(innovation)}"
                f"Innovation covariance is:\n{format_matrix(inv_covariance)}"
            )
            return False
        return True

    @abc.abstractmethod
    def predict(self, reference_time: float, delta: float) -> None:
        """Project the state and covariance forward by delta seconds."""

    @abc.abstractmethod
    def correct(self, measurement: Measurement) -> None:
        """Fold a measurement into the state and covariance."""

    def _debug(self, message: str) -> None:
        if self.debug and self._debug_stream is not None:
            self._debug_stream.write(message)