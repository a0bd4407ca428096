STATE_SESSION_KEY = "tunnistamo_state"
DESTINATION_SESSION_KEY = "tunnistamo_destination"
SESSION_TOKENS_SESSION_KEY = "tunnistamo_tokens"

# The plugin id of the only provider this package can redirect to automatically
TUNNISTAMO_PLUGIN_ID = "tunnistamo"

# Seconds after which a pending login attempt no longer blocks a new one
STATE_MAX_AGE = 10 * 60
