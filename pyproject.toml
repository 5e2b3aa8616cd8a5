[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ahrsfusion"
version = "0.1.0"
description = "FDILink AHRS serial frame decoding and an extended Kalman filter for robot state estimation"
requires-python = ">=3.10"
keywords = ["ahrs", "imu", "serial", "kalman", "ekf", "localization", "robotics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ahrsfusion-ahrs = "ahrsfusion.ahrs:main"

[tool.hatch.build.targets.wheel]
packages = ["ahrsfusion"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
