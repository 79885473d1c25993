"""Analysis constants.

These are tuning defaults, not runtime options. Change them here and
nowhere else.
"""

# Tempo detection framing (samples)
TEMPO_FRAME_SIZE = 2048
TEMPO_HOP_SIZE = 512

# Plausible tempo range; estimates are octave-corrected into it
MIN_BPM = 60.0
MAX_BPM = 200.0

# Spectral flux below this fraction of a frame's total magnitude is
# stationary ripple, not an onset
NOVELTY_FLOOR = 0.05

# Key detection uses a longer block for finer frequency resolution
KEY_FRAME_SIZE = 8192
KEY_HOP_SIZE = 4096

# Bins outside this band are ignored when folding into pitch classes (Hz)
KEY_MIN_FREQUENCY = 55.0
KEY_MAX_FREQUENCY = 5000.0

# Pitch-class anchor: A4
REFERENCE_FREQUENCY = 440.0
REFERENCE_PITCH_CLASS = 9

# Frames transformed per batch; bounds peak memory on long files
FRAME_BATCH = 64
