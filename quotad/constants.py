# Account status values (stored as integers)

STATUS_DISABLED = 0
STATUS_TRIAL = 1
STATUS_QUOTA = 2
# Reserved; no transition reaches it.
STATUS_BOTH = 3

SECONDS_PER_DAY = 24 * 3600

# FiSH envelope
FISH_MARKER = "+OK *"
FISH_PREFIXES = ("+OK ", "mcps ")
FISH_CBC_INDICATOR = "*"
FISH_IV_LEN = 8
FISH_BLOCK_SIZE = 8
FISH_KEY_MIN = 4
FISH_KEY_MAX = 56

# Command surface
DEFAULT_STATUS_TRIGGER = "!top"
DEFAULT_CONTROL_TRIGGER = "!ft"
CONTROL_VERBS = ("trial", "quota", "extend", "delete")

# IRC formatting control codes
IRC_BOLD = "\x02"
IRC_COLOR = "\x03"
IRC_RESET = "\x0f"
IRC_GREEN = "\x0303"
IRC_RED = "\x0304"
IRC_PURPLE = "\x0306"
IRC_CYAN = "\x0310"

# User record file keywords
REC_GROUP = "GROUP"
REC_FLAGS = "FLAGS"
REC_RATIO = "RATIO"
REC_WKUP = "WKUP"
REC_DAYUP = "DAYUP"
REC_ADDED = "ADDED"

STATUS_NAMES = {
    STATUS_DISABLED: "disabled",
    STATUS_TRIAL: "trial",
    STATUS_QUOTA: "quota",
    STATUS_BOTH: "both",
}
