import os
import sys
from dotenv import load_dotenv

load_dotenv()

from telegram_helper import TelegramSender

TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')
BASE_URL = (os.getenv('WEBHOOK_URL') or '').rstrip('/')  # e.g. https://bot.example.com


def webhook_url(base_url: str) -> str:
    return base_url if base_url.endswith('/telegram') else f"{base_url}/telegram"


def set_webhook(base_url: str = BASE_URL) -> bool:
    if not TOKEN:
        print("Error: TELEGRAM_BOT_TOKEN not found in .env")
        return False
    if not base_url:
        print("Error: WEBHOOK_URL not set (pass it as an argument or in .env)")
        return False

    url = webhook_url(base_url)
    print(f"Setting webhook to: {url}")
    ok = TelegramSender(TOKEN).set_webhook(url)
    print("OK" if ok else "Failed, check logs")
    return ok


if __name__ == "__main__":
    set_webhook(sys.argv[1].rstrip('/') if len(sys.argv) > 1 else BASE_URL)
