"""Audio decode, concatenation and WAV encoding.

Decoding shells out to ffmpeg/ffprobe when available; the WAV-only decoder
and the encoder are pure Python (stdlib `wave`, `struct`, `array`).
"""
