"""Virtual Boy hardware components: video processor, sound unit, timer, gamepad and save states."""

__version__ = "0.1.0"