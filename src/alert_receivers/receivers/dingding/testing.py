"""Fixtures for tests that exercise the DingDing receiver."""

# A receiver settings document that sets every field DingDingConfig supports.
# It contains no secrets.
FULL_VALID_CONFIG_FOR_TESTING = """{
    "url": "http://localhost",
    "msgType": "actionCard",
    "title": "Alerts firing: {{ len .Alerts.Firing }}",
    "message": "{{ len .Alerts.Firing }} alerts are firing, {{ len .Alerts.Resolved }} are resolved",
    "at": {
        "atMobiles": ["1234567890", "0987654321"],
        "atUserIds": ["user1", "user2"],
        "isAtAll": true
    }
}"""
