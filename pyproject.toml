[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "midiroll"
version = "0.1.0"
description = "Play Standard MIDI Files in real time and watch them scroll by as a piano roll."
requires-python = ">=3.10"
keywords = ["midi", "piano-roll", "player", "visualizer", "smf"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]
dependencies = [
    "mido",
    "pygame",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
midiroll = "midiroll.app:main"

[tool.hatch.build.targets.wheel]
packages = ["midiroll"]

[tool.pytest.ini_options]
addopts = "-ra"
