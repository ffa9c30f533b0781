"""Compile-time constants for the botmaster package.

These are values baked into code that change only on code updates,
NOT between environments. For runtime settings, see config.py.
"""

# ──────────────────────────────────────────────────────────────────────
# Message Model
# ──────────────────────────────────────────────────────────────────────
MAX_QUICK_REPLIES = 10
QUICK_REPLY_CONTENT_TYPE = "text"
ATTACHMENT_TYPES = frozenset({"image", "audio", "video", "file", "template"})

# ──────────────────────────────────────────────────────────────────────
# Sender actions
# ──────────────────────────────────────────────────────────────────────
SENDER_ACTION_TYPING_ON = "typing_on"
SENDER_ACTION_TYPING_OFF = "typing_off"
SENDER_ACTION_MARK_SEEN = "mark_seen"
SENDER_ACTIONS = frozenset({
    SENDER_ACTION_TYPING_ON,
    SENDER_ACTION_TYPING_OFF,
    SENDER_ACTION_MARK_SEEN,
})

# ──────────────────────────────────────────────────────────────────────
# Capability kinds (keys of a bot's capability set)
# ──────────────────────────────────────────────────────────────────────
KIND_TEXT = "text"
KIND_ATTACHMENT = "attachment"
KIND_QUICK_REPLY = "quick_reply"

# Label used in "Bots of type <type> can't send messages with <label>"
KIND_LABELS = {
    KIND_TEXT: "text",
    KIND_ATTACHMENT: "attachment",
    KIND_QUICK_REPLY: "quick replies",
    **{action: f"{action} sender action" for action in SENDER_ACTIONS},
}

DEFAULT_SENDS = {kind: True for kind in KIND_LABELS}

# ──────────────────────────────────────────────────────────────────────
# Config
# ──────────────────────────────────────────────────────────────────────
CONFIG_FILENAME = "configs/config.json"
CONFIG_ENV_VAR = "BOTMASTER_CONFIG"
