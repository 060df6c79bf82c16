# Context-window defaults. Settings mirror these; services read Settings.
DEFAULT_MIN_CTX = 1024
DEFAULT_MAX_CTX = 81920
DEFAULT_HEADROOM = 1.25

# Ascending ladder of context sizes the backend allocates efficiently.
DEFAULT_BUCKETS: tuple[int, ...] = (
    1024, 2048, 4096, 8192, 9216, 10240, 11264, 12288, 13312, 14336, 15360,
    16384, 20480, 24576, 28672, 32768, 36864, 40960, 45056, 49152, 53248,
    57344, 61440, 65536, 69632, 73728, 77824, 81920, 86016, 90112, 94208,
    98304, 102400,
)
DEFAULT_BUCKETS_CSV = ",".join(str(b) for b in DEFAULT_BUCKETS)

# -------- Output budget --------------------------------------------------
DEFAULT_OUTPUT_BUDGET = 1024
MAX_OUTPUT_BUDGET = 10240
STRUCTURED_OVERHEAD = 128
# Dynamic default: max(DEFAULT_OUTPUT_BUDGET, DYNAMIC_BUDGET_BASE + prompt/2)
DYNAMIC_BUDGET_BASE = 256
# Extra reservation for structured output when num_predict is absent
STRUCTURED_UNCAPPED_BUMP = 256

# -------- Estimator coefficients (pre-calibration) -----------------------
DEFAULT_FIXED_OVERHEAD_TOKENS = 32.0
DEFAULT_PER_MESSAGE_OVERHEAD = 8.0
DEFAULT_TOKENS_PER_BYTE = 0.25   # ~4 bytes/token
DEFAULT_TOKENS_PER_IMAGE = 768

# -------- System prompt directives ---------------------------------------
THINK_MARKER = "__think="
