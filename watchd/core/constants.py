"""Global constants for the watchd application."""

# Firestore collections
USERS = "users"
ALLOWLIST = "allowlist"
GROUPS = "groups"
GROUP_SLUGS = "group_slugs"
GROUP_SHARE_CODES = "group_share_codes"
MEMBERSHIPS = "memberships"
INVITES = "invites"
ENTRIES = "entries"
GROUP_TITLES = "group_titles"
REACTIONS = "reactions"
COMMENTS = "comments"
NOTIFICATION_PREFERENCES = "notification_preferences"

# Membership status. Leaving or removal deletes the document.
STATUS_ACTIVE = "ACTIVE"

# User roles
USER_ROLE_USER = "USER"
USER_ROLE_ADMIN = "ADMIN"

# Group rules
GROUP_NAME_MIN_LENGTH = 2
GROUP_NAME_MAX_LENGTH = 60
INVITE_TTL_DAYS = 7

# Entry rules
NOTE_MAX_LENGTH = 500
PERSONAL_SCOPE = "personal"
FEED_LIMIT = 12

# Comment rules
COMMENT_MIN_LENGTH = 1
COMMENT_MAX_LENGTH = 500

# Reaction kinds
REACTION_LIKE = "LIKE"
REACTION_DISLIKE = "DISLIKE"
REACTION_KINDS = (REACTION_LIKE, REACTION_DISLIKE)

# Notifications
DIGEST_WINDOW_DAYS = 7

# Title search
SEARCH_MIN_LENGTH = 2
