import os

# Compiler configurations
COMPILERS = {
    "c++14": {
        "path": os.getenv("JUDGE_GXX", "g++"),
        "args": ["-O2", "-pipe", "-std=gnu++14"],
    },
    "c++17": {
        "path": os.getenv("JUDGE_GXX", "g++"),
        "args": ["-O2", "-pipe", "-std=gnu++17"],
    },
    "c++20": {
        "path": os.getenv("JUDGE_GXX", "g++"),
        "args": ["-O2", "-pipe", "-std=gnu++20"],
        "libs": ["-lm"],
    },
}
DEFAULT_LANGUAGE = os.getenv("JUDGE_DEFAULT_LANGUAGE", "c++17")

# Judge settings
DEFAULT_TIME_LIMIT = 1000  # ms
DEFAULT_MEMORY_LIMIT = 128  # MB
STACK_LIMIT_KB = int(os.getenv("JUDGE_STACK_LIMIT_KB", 256 * 1024))  # independent of the memory limit
COMPILE_TIMEOUT = int(os.getenv("JUDGE_COMPILE_TIMEOUT", 30))  # s

# Output caps
MAX_OUTPUT_SIZE = 10 * 1024 * 1024  # 10MB, also the child's RLIMIT_FSIZE
MAX_STDERR_SIZE = 64 * 1024
MAX_DIAGNOSTIC_SIZE = 8 * 1024

WORK_DIR_PREFIX = "seva-run-"

# Server
HOST = os.getenv("JUDGE_HOST", "0.0.0.0")
PORT = int(os.getenv("JUDGE_PORT", 8080))
LOG_LEVEL = os.getenv("JUDGE_LOG_LEVEL", "INFO")
