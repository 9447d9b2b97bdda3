"""
Event log message templates.

Pure constants - the controller formats them with str.format().
Tests assert on the rendered text, so changing a template is a
behaviour change.
"""

# =============================================================================
# PREPARING
# =============================================================================

SYSTEM_START = "--- SYSTEM START ---"
LOADING_CONFIGURATION = "Loading runtime configuration..."
JOB_ALLOCATED = "Allocating job for: {method} {url}"
INITIAL_DELAY = "Applying initial delay of {delay:g}s..."

# =============================================================================
# FIRING / WAITING
# =============================================================================

ATTEMPT = "Attempt {attempt} of {total}"
BUILDING_REQUEST = "Building HTTP request..."
WAITING_RESPONSE = "Waiting for server response..."

# =============================================================================
# SUCCESS
# =============================================================================

RESPONSE_SUCCESS = "Success! Status: {status}"
STORING_RESPONSE = "Writing response to storage..."
PAYLOAD_SAVED = "Payload saved: {preview}..."
STORE_FAILED = "Storage write failed: {error}"

# =============================================================================
# FAILURE
# =============================================================================

REQUEST_FAILED = "Request failed: {reason}"
RETRY_SCHEDULED = "Retry policy active. Waiting {delay:g}s before next attempt..."
RETRIES_EXHAUSTED = "Maximum attempts exceeded or retry disabled."
FATAL_ERROR = "Fatal error recorded."
ABORTED = "Execution aborted by caller."

# =============================================================================
# FINISHED
# =============================================================================

FINISHED_SUCCESS = "--- EXECUTION FINISHED SUCCESSFULLY ---"
FINISHED_ERROR = "--- EXECUTION FINISHED WITH ERROR ---"
