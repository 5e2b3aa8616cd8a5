"""Extended Kalman filter over the fifteen-variable motion state."""

from __future__ import annotations

import math

import numpy as np

from .filter_base import ControlMember, FilterBase, Measurement, StateMember
from .filter_utilities import format_indices, format_matrix, format_vector

__all__ = ["Ekf"]

_ANGLES = frozenset((StateMember.ROLL, StateMember.PITCH, StateMember.YAW))
_MIN_MEASUREMENT_VARIANCE = 1e-9


def _wrap_innovation(value: float) -> float:
    while value < -math.pi:
        value += math.tau
    while value > math.pi:
        value -= math.tau
    return value


class Ekf(FilterBase):
    """Extended Kalman filter with an omnidirectional 3D motion model."""

    def correct(self, measurement: Measurement) -> None:
        """Fold the measured, finite variables of a measurement into the state."""
        self._debug(
            "---------------------- Ekf::correct ----------------------\n"
            f"State is:\n{format_vector(self.state)}"
            f"Topic is:\n{measurement.topic_name}\n"
            f"Measurement is:\n{format_vector(measurement.measurement)}"
            f"Measurement covariance is:\n{format_matrix(measurement.covariance)}"
        )

        indices: list[int] = []
        for index, enabled in enumerate(measurement.update_vector):
            if not enabled:
                continue
            value = float(measurement.measurement[index])
            if math.isnan(value):
                self._debug(f"Value at index {index} was nan. Excluding from update.\n")
            elif math.isinf(value):
                self._debug(f"Value at index {index} was inf. Excluding from update.\n")
            else:
                indices.append(index)
        self._debug(f"Update indices are:\n{format_indices(indices)}")

        size = len(indices)
        state_size = self.state.shape[0]
        state_subset = self.state[indices].astype(float)
        measurement_subset = measurement.measurement[indices].astype(float)
        covariance_subset = np.array(
            measurement.covariance[np.ix_(indices, indices)], dtype=float
        ).reshape(size, size)

        for i, index in enumerate(indices):
            if covariance_subset[i, i] < 0:
                self._debug(
                    f"WARNING: Negative covariance for index {i} of measurement "
                    f"(value is{covariance_subset[i, i]}). Using absolute value...\n"
                )
                covariance_subset[i, i] = abs(covariance_subset[i, i])
            if covariance_subset[i, i] < _MIN_MEASUREMENT_VARIANCE:
                self._debug(
                    f"WARNING: measurement had very small error covariance for index {index}. "
                    "Adding some noise to maintain filter stability.\n"
                )
                covariance_subset[i, i] = _MIN_MEASUREMENT_VARIANCE

        state_to_measurement = np.zeros((size, state_size))
        state_to_measurement[np.arange(size), indices] = 1.0

        self._debug(
            f"Current state subset is:\n{format_vector(state_subset)}"
            f"\nMeasurement subset is:\n{format_vector(measurement_subset)}"
            f"\nMeasurement covariance subset is:\n{format_matrix(covariance_subset)}"
            f"\nState-to-measurement subset is:\n{format_matrix(state_to_measurement)}"
        )

        pht = self.estimate_error_covariance @ state_to_measurement.T
        if size:
            hphr_inv = np.linalg.inv(state_to_measurement @ pht + covariance_subset)
        else:
            hphr_inv = np.zeros((0, 0))
        kalman_gain = pht @ hphr_inv

        innovation = measurement_subset - state_subset
        for i, index in enumerate(indices):
            if index in _ANGLES:
                innovation[i] = _wrap_innovation(float(innovation[i]))

        if not self.check_mahalanobis_threshold(
            innovation, hphr_inv, measurement.mahalanobis_thresh
        ):
            return

        self.state = self.state + kalman_gain @ innovation

        gain_residual = self.identity - kalman_gain @ state_to_measurement
        self.estimate_error_covariance = (
            gain_residual @ self.estimate_error_covariance @ gain_residual.T
            + kalman_gain @ covariance_subset @ kalman_gain.T
        )

        self.wrap_state_angles()

        self._debug(
            f"Kalman gain subset is:\n{format_matrix(kalman_gain)}"
            f"\nInnovation is:\n{format_vector(innovation)}"
            f"\nCorrected full state is:\n{format_vector(self.state)}"
            "\nCorrected full estimate error covariance is:\n"
            f"{format_matrix(self.estimate_error_covariance)}"
            "\n\n---------------------- /Ekf::correct ----------------------\n"
        )

    def predict(self, reference_time: float, delta: float) -> None:
        """Project state and covariance forward by delta seconds."""
        self._debug(
            "---------------------- Ekf::predict ----------------------\n"
            f"delta is {delta}\nstate is {format_vector(self.state)}"
        )
        S = StateMember
        state = self.state
        roll = float(state[S.ROLL])
        pitch = float(state[S.PITCH])
        yaw = float(state[S.YAW])
        x_vel = float(state[S.VX])
        y_vel = float(state[S.VY])
        z_vel = float(state[S.VZ])
        pitch_vel = float(state[S.VPITCH])
        yaw_vel = float(state[S.VYAW])
        x_acc = float(state[S.AX])
        y_acc = float(state[S.AY])
        z_acc = float(state[S.AZ])

        sp, cp = math.sin(pitch), math.cos(pitch)
        cpi = 1.0 / cp
        tp = sp * cpi
        sr, cr = math.sin(roll), math.cos(roll)
        sy, cy = math.sin(yaw), math.cos(yaw)

        self.prepare_control(reference_time, delta)

        f = self.transfer_function
        f[S.X, S.VX] = cy * cp * delta
        f[S.X, S.VY] = (cy * sp * sr - sy * cr) * delta
        f[S.X, S.VZ] = (cy * sp * cr + sy * sr) * delta
        f[S.X, S.AX] = 0.5 * f[S.X, S.VX] * delta
        f[S.X, S.AY] = 0.5 * f[S.X, S.VY] * delta
        f[S.X, S.AZ] = 0.5 * f[S.X, S.VZ] * delta
        f[S.Y, S.VX] = sy * cp * delta
        f[S.Y, S.VY] = (sy * sp * sr + cy * cr) * delta
        f[S.Y, S.VZ] = (sy * sp * cr - cy * sr) * delta
        f[S.Y, S.AX] = 0.5 * f[S.Y, S.VX] * delta
        f[S.Y, S.AY] = 0.5 * f[S.Y, S.VY] * delta
        f[S.Y, S.AZ] = 0.5 * f[S.Y, S.VZ] * delta
        f[S.Z, S.VX] = -sp * delta
        f[S.Z, S.VY] = cp * sr * delta
        f[S.Z, S.VZ] = cp * cr * delta
        f[S.Z, S.AX] = 0.5 * f[S.Z, S.VX] * delta
        f[S.Z, S.AY] = 0.5 * f[S.Z, S.VY] * delta
        f[S.Z, S.AZ] = 0.5 * f[S.Z, S.VZ] * delta
        f[S.ROLL, S.VROLL] = delta
        f[S.ROLL, S.VPITCH] = sr * tp * delta
        f[S.ROLL, S.VYAW] = cr * tp * delta
        f[S.PITCH, S.VPITCH] = cr * delta
        f[S.PITCH, S.VYAW] = -sr * delta
        f[S.YAW, S.VPITCH] = sr * cpi * delta
        f[S.YAW, S.VYAW] = cr * cpi * delta
        f[S.VX, S.AX] = delta
        f[S.VY, S.AY] = delta
        f[S.VZ, S.AZ] = delta

        half_at2 = 0.5 * delta * delta

        def motion(xc: float, yc: float, zc: float) -> float:
            return (xc * x_vel + yc * y_vel + zc * z_vel) * delta + (
                xc * x_acc + yc * y_acc + zc * z_acc
            ) * half_at2

        dfx_dr = motion(0.0, cy * sp * cr + sy * sr, -cy * sp * sr + sy * cr)
        dfr_dr = 1.0 + (cr * tp * pitch_vel - sr * tp * yaw_vel) * delta
        dfx_dp = motion(-cy * sp, cy * cp * sr, cy * cp * cr)
        dfr_dp = (cpi * cpi * sr * pitch_vel + cpi * cpi * cr * yaw_vel) * delta
        dfx_dy = motion(-sy * cp, -sy * sp * sr - cy * cr, -sy * sp * cr + cy * sr)
        dfy_dr = motion(0.0, sy * sp * cr - cy * sr, -sy * sp * sr - cy * cr)
        dfp_dr = (-sr * pitch_vel - cr * yaw_vel) * delta
        dfy_dp = motion(-sy * sp, sy * cp * sr, sy * cp * cr)
        dfy_dy = motion(cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr)
        dfz_dr = motion(0.0, cp * cr, -cp * sr)
        dfyaw_dr = (cr * cpi * pitch_vel - sr * cpi * yaw_vel) * delta
        dfz_dp = motion(-cp, -sp * sr, -sp * cr)
        dfyaw_dp = (sr * tp * cpi * pitch_vel + cr * tp * cpi * yaw_vel) * delta

        j = f.copy()
        j[S.X, S.ROLL] = dfx_dr
        j[S.X, S.PITCH] = dfx_dp
        j[S.X, S.YAW] = dfx_dy
        j[S.Y, S.ROLL] = dfy_dr
        j[S.Y, S.PITCH] = dfy_dp
        j[S.Y, S.YAW] = dfy_dy
        j[S.Z, S.ROLL] = dfz_dr
        j[S.Z, S.PITCH] = dfz_dp
        j[S.ROLL, S.ROLL] = dfr_dr
        j[S.ROLL, S.PITCH] = dfr_dp
        j[S.PITCH, S.ROLL] = dfp_dr
        j[S.YAW, S.ROLL] = dfyaw_dr
        j[S.YAW, S.PITCH] = dfyaw_dp
        self.transfer_function_jacobian = j

        self._debug(
            f"Transfer function is:\n{format_matrix(f)}"
            f"\nTransfer function Jacobian is:\n{format_matrix(j)}"
            f"\nProcess noise covariance is:\n{format_matrix(self.process_noise_covariance)}"
            f"\nCurrent state is:\n{format_vector(self.state)}"
        )

        noise = self.process_noise_covariance
        if self.use_dynamic_process_noise_covariance:
            self.compute_dynamic_process_noise_covariance(self.state, delta)
            noise = self.dynamic_process_noise_covariance

        C = ControlMember
        accel = self.control_acceleration
        self.state[S.VROLL] += accel[C.VROLL] * delta
        self.state[S.VPITCH] += accel[C.VPITCH] * delta
        self.state[S.VYAW] += accel[C.VYAW] * delta
        for state_member, control_member in ((S.AX, C.VX), (S.AY, C.VY), (S.AZ, C.VZ)):
            if self.control_update_vector[control_member]:
                self.state[state_member] = accel[control_member]

        self.state = f @ self.state
        self.wrap_state_angles()

        self._debug(
            f"Predicted state is:\n{format_vector(self.state)}"
            "\nCurrent estimate error covariance is:\n"
            f"{format_matrix(self.estimate_error_covariance)}"
        )

        self.estimate_error_covariance = j @ self.estimate_error_covariance @ j.T + delta * noise

        self._debug(
            "Predicted estimate error covariance is:\n"
            f"{format_matrix(self.estimate_error_covariance)}"
            "\n\n--------------------- /Ekf::predict ----------------------\n"
        )