"""Timeline composition: frame layout and fade envelopes."""
