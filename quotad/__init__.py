"""quotad: FiSH-encrypted IRC operator for upload quota and trial enforcement."""

__version__ = "0.1.0"
