"""Application-wide constants."""

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLE_GUEST = "guest"

DEFAULT_USER_ROLE = ROLE_USER

# Placeholder key shipped in example env files; never a real Stripe account.
MOCK_STRIPE_KEY = "sk_test_mock_key"

# Collections
PROFILES = "profiles"
USER_PROFILES = "user_profiles"
SUBSCRIPTION_TYPES = "subscription_types"
SUBSCRIPTIONS = "subscriptions"
SUBSCRIPTION_USERS = "subscription_users"
SUBSCRIPTION_CONSUMPTION = "subscription_consumption"
NOTIFICATION_TYPES = "notification_types"
NOTIFICATION_PREFERENCES = "notification_preferences"
SUPPORT_TICKETS = "support_tickets"
FAQ_ENTRIES = "faq_entries"
