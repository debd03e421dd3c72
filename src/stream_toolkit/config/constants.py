"""
System constants that should never change.

These are technical/protocol values, not user preferences.
User-configurable values should go in config.yaml instead.
"""

# Logging
VERBOSE_LOGGING_THRESHOLD = 2  # -vv shows logger names and pipeline chatter

# Resolver format selection (same for streaming and metadata-only runs)
RESOLVER_FORMAT = "webm[abr>0]/bestaudio/best"
RESOLVER_RETRIES = "infinite"  # Only covers transient network errors
RESOLVER_ERROR_PREFIX = b"ERROR:"

# Transcoder output format (consumed by the playback engine as-is)
OUTPUT_CHANNELS = 2
OUTPUT_SAMPLE_RATE = 48000
OUTPUT_CONTAINER_FORMAT = "s16le"  # Raw muxer; sample format comes from the codec below
OUTPUT_CODEC = "pcm_f32le"
BYTES_PER_SAMPLE = 4

# EBU R128 loudness normalization targets
LOUDNORM_INTEGRATED = -16.0  # LUFS
LOUDNORM_RANGE = 11.0  # LU
LOUDNORM_TRUE_PEAK = -1.5  # dBTP

# Seek offsets are passed to the transcoder with millisecond precision
SEEK_DECIMALS = 3

# Rate gate defaults (overridable once, at process start-up)
DEFAULT_RATE_CAPACITY = 5
DEFAULT_RATE_PERIOD_SECONDS = 60.0
DEFAULT_RATE_BURST = 2  # Back-to-back grants; any window of one period admits capacity + burst - 1

# Pipeline teardown
DEFAULT_TERMINATION_GRACE_SECONDS = 2.0
KILL_WAIT_SECONDS = 1.0

# 20 ms of stereo float PCM at 48 kHz
DEFAULT_CHUNK_SIZE = OUTPUT_SAMPLE_RATE // 50 * OUTPUT_CHANNELS * BYTES_PER_SAMPLE
