import requests

from orderledger.core.config import settings


def post_to_slack(text: str) -> str:
    """Send to the Slack incoming webhook and return the response body."""
    webhook = settings.slack_webhook_url
    webhook_url = webhook.get_secret_value() if webhook else None
    if not webhook_url:
        raise RuntimeError("SLACK_WEBHOOK_URL is not set")

    resp = requests.post(webhook_url, json={"text": text}, timeout=10)
    if resp.status_code >= 400:
        raise RuntimeError(f"Slack webhook failed: {resp.status_code} {resp.text}")

    return (resp.text or "").strip()
