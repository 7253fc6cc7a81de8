"""Spectrogram engines."""
