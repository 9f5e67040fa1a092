"""Global constants for the pairchat application."""

# Collection names
USERS_COLLECTION = "users"
USERNAMES_COLLECTION = "usernames"
FRIEND_REQUESTS_COLLECTION = "friendRequests"
CHATS_COLLECTION = "chats"
MESSAGES_COLLECTION = "messages"

FIRESTORE_BATCH_LIMIT = 400

# Friend request statuses
REQUEST_PENDING = "pending"
REQUEST_ACCEPTED = "accepted"
REQUEST_REJECTED = "rejected"

# Friendship status as seen from one user's profile page
FRIENDSHIP_SELF = "self"
FRIENDSHIP_FRIENDS = "friends"
FRIENDSHIP_PENDING_SENT = "pending_sent"
FRIENDSHIP_PENDING_RECEIVED = "pending_received"
FRIENDSHIP_NONE = "none"

# Chat list tabs stored on the user document
TAB_ACTIVE = "active"
TAB_FRIENDS = "friends"
TAB_FIELDS = {TAB_ACTIVE: "savedChats", TAB_FRIENDS: "friendsTab"}

# Secure defaults written when a user document is initialized
DEFAULT_PLAN = "free"

# Messages a free-plan user may send per day; counts are reset daily
FREE_PLAN_DAILY_MESSAGE_LIMIT = 100

# Channel sync
MESSAGES_PAGE_SIZE = 20
MESSAGE_CACHE_TTL_SECONDS = 20 * 60
CLOCK_SKEW_TOLERANCE_SECONDS = 2.0
PROVISIONAL_ID_PREFIX = "temp-"

# Server transactions
TRANSACTION_MAX_ATTEMPTS = 5
TRANSACTION_TIMEOUT_SECONDS = 10.0

# User-facing messages
MSG_LOAD_FAILED = "Unable to load messages."
MSG_LOAD_OLDER_FAILED = "Unable to load older messages."
MSG_SEND_FAILED = "Failed to send message. Please try again."
MSG_DAILY_LIMIT = "You have reached your daily message limit for the free plan."
MSG_EDIT_FAILED = "Failed to edit message. Please try again."
MSG_DELETE_FAILED = "Failed to delete message. Please try again."
