# ahrsfusion

Tools for reading an FDILink attitude and heading reference system (AHRS)
over a serial line, and an extended Kalman filter for estimating a robot's
3D state.

## Modules

- `ahrsfusion.crc`: the table-driven checksums of the FDILink protocol.
  `crc8` covers the first four header bytes. `crc16` covers a frame's payload.
  `crc32` returns the same value as `crc16`.
- `ahrsfusion.frames`: the frame constants (`FRAME_HEAD`, `FRAME_END`,
  `IMU_LEN`, `AHRS_LEN`, `INSGPS_LEN`) and the `FrameType` enum. It also holds
  the binary layouts `FrameHeader`, `ImuPacket`, `AhrsPacket` and
  `InsGpsPacket`. Each layout has `from_bytes` and `to_bytes`, and
  `from_bytes` raises `ValueError` when the length is wrong.
- `ahrsfusion.reader`: `FrameReader` wraps any binary stream that has a
  `read(n)` method. It yields validated `Frame` objects and drops frames whose
  type, length, CRC-8, CRC-16 or end byte do not match. It counts the serial
  numbers it missed in `sn_lost`. Iteration stops as soon as a read returns
  fewer bytes than requested. `open_serial(port, baud, timeout)` opens a port
  at 8N1 with no flow control.
- `ahrsfusion.ahrs`: `convert_ahrs` combines an `AhrsPacket` with the latest
  `ImuPacket` and returns an `ImuMessage` that carries orientation, angular
  velocity, linear acceleration and magnetic yaw. `DeviceType.RAW` passes the
  axes through unchanged. `DeviceType.ROS` rotates them into the ROS
  convention. The module also provides the quaternion helpers
  `quaternion_multiply`, `axis_angle_quaternion` and `euler_angles_zyx`, and
  `mag_calculate_yaw` for a tilt-compensated heading. `AhrsDriver` feeds frames
  from a reader to a list of subscriber callables.
- `ahrsfusion.imu_tf`: `imu_to_transform` turns an (x, y, z, w) orientation and
  a position into a normalised `StampedTransform`.
- `ahrsfusion.filter_utilities`: `clamp_rotation`, `append_prefix`, and the
  debug formatters `format_matrix`, `format_vector`, `format_indices` and
  `format_flags`.
- `ahrsfusion.filter_base`: the fifteen-variable state layout (`StateMember`,
  `ControlMember`), the `Measurement` record and the abstract `FilterBase`.
  `FilterBase` handles initialisation, control input, dynamic process noise,
  angle wrapping and the Mahalanobis outlier test.
- `ahrsfusion.ekf`: `Ekf`, an extended Kalman filter with an omnidirectional
  3D motion model.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Reading the device

```
ahrsfusion-ahrs --port /dev/ttyTHS1 --baud 921600
```

The command accepts these options:

- `--port` and `--baud`: the serial device and its speed.
- `--device-type`: `0` for raw axes, `1` for ROS axes. The default is `1`.
- `--imu-frame`: the frame name. The default is `imu`.
- `--debug`: turns on verbose logging.

For every AHRS frame the command prints one line. The line holds the
timestamp, the frame name, the orientation quaternion (x y z w) and the
magnetic yaw. If the port cannot be opened, the command exits with status 1.

Frames can also be read from any stream, such as a recorded file:

```python
from ahrsfusion.reader import FrameReader
from ahrsfusion.ahrs import AhrsDriver

with open("capture.bin", "rb") as stream:
    driver = AhrsDriver(FrameReader(stream))
    driver.subscribers.append(print)
    driver.run()
```

## Using the filter

```python
import numpy as np
from ahrsfusion.ekf import Ekf
from ahrsfusion.filter_base import Measurement, StateMember

ekf = Ekf()
update = [0] * 15
update[StateMember.X] = 1
ekf.process_measurement(
    Measurement(measurement=np.zeros(15), covariance=np.eye(15) * 0.1,
                update_vector=update, time=1.0)
)
print(ekf.state)
```

The first measurement initialises the state. Each later measurement runs a
prediction up to its time, followed by a correction.

## Checksums

```python
from ahrsfusion.crc import crc8, crc16

crc8(b"\xfc\x41\x30\x01")
crc16(bytes(48))
```

## What it does not do

- It publishes nothing on a message bus. `AhrsDriver` only calls Python
  callables.
- `imu_to_transform` builds a value and does not broadcast it.
- INS/GPS frames are decoded, but the driver does not turn them into messages.
- The filter has no node around it. There is nothing that subscribes to
  sensor topics, loads configuration, transforms measurements between frames,
  or keeps a history for smoothing. You build the `Measurement` objects and
  pass them in yourself.