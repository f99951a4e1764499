"""Centralized constants for actionsee.

This module consolidates configuration constants and magic numbers
used across multiple modules to ensure consistency and make tuning easier.
"""

# =============================================================================
# Adaptive Log Polling
# =============================================================================

#: Remaining quota above which logs are tailed at the fastest rate
SAFE_QUOTA_THRESHOLD: int = 1000

#: Remaining quota above which polling is slowed but still responsive
WARNING_QUOTA_THRESHOLD: int = 500

#: Remaining quota above which polling is slow; below it polling is near-idle
LOW_QUOTA_THRESHOLD: int = 100

#: Poll interval in seconds when quota is plentiful (fastest)
FAST_POLL_INTERVAL: float = 2.0

#: Poll interval in seconds inside the warning band
WARNING_POLL_INTERVAL: float = 5.0

#: Poll interval in seconds when quota is low
LOW_POLL_INTERVAL: float = 10.0

#: Poll interval in seconds when quota is (nearly) exhausted (slowest)
IDLE_POLL_INTERVAL: float = 30.0

#: Assumed quota before the first API response reports the real value
DEFAULT_QUOTA: int = 5000

# =============================================================================
# Status Bar
# =============================================================================

#: Seconds a flash message stays in the status bar
FLASH_DURATION: float = 3.0

# =============================================================================
# GitHub API
# =============================================================================

#: Base URL of the GitHub REST API
GITHUB_API_URL: str = "https://api.github.com"

#: Timeout in seconds for a single API request
API_TIMEOUT: float = 30.0

#: Number of runs requested per workflow
RUNS_PER_PAGE: int = 30

#: Number of workflows requested per repository
WORKFLOWS_PER_PAGE: int = 100

#: Maximum size in bytes of a job log kept in memory; older content is dropped
#: Prevents memory issues from very long job logs
MAX_LOG_BYTES: int = 2 * 1024 * 1024

# =============================================================================
# Runtime
# =============================================================================

#: Number of worker threads executing fetches and actions
MAX_WORKERS: int = 4

#: Seconds to wait for keyboard input per loop iteration
INPUT_TIMEOUT: float = 0.1

#: Maximum number of characters accepted by the filter input
FILTER_CHAR_LIMIT: int = 50

#: Number of lines moved by a single log scroll key
LOG_SCROLL_STEP: int = 10

#: Seconds to wait for the log poll thread to exit on shutdown
POLLER_JOIN_TIMEOUT: float = 1.0
