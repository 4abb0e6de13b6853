"""
Slack Dispatch Runtime - Main Entry Point

Runs one process that:
- Connects a bot to every configured workspace
- Routes messages to controller plugins
- Receives interactive callbacks on the webhook listener
"""

import os
import sys
import json
import signal
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

from relay import IntroController, PluginLoader
from relay.slack import ClientOptions, ConfigError, SlackClient, WebhookError

BOT_DIR = Path(__file__).parent

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Slack Dispatch Runtime")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to bot config JSON file (e.g., bots/workspace.json)"
    )
    return parser.parse_args(argv)


def load_environment(env_file: str | None = None):
    """Load and validate environment variables."""
    if env_file:
        env_path = BOT_DIR / env_file
    else:
        env_path = BOT_DIR / ".env"
    load_dotenv(env_path)

    required_vars = ["SLACK_BOT_TOKEN"]
    missing = [var for var in required_vars if not os.getenv(var)]

    if missing:
        logger.error(
            f"Missing required environment variables: {', '.join(missing)}"
        )
        sys.exit(1)


def load_config(path: str | None) -> dict:
    if not path:
        return {}
    config_path = BOT_DIR / path
    with open(config_path) as f:
        config = json.load(f)
    logger.info(f"Loaded bot config: {config.get('name', path)}")
    return config


def build_client(config: dict) -> SlackClient:
    """Create the client, load controller plugins and add the bots."""
    if config:
        options = ClientOptions.from_dict(config)
    else:
        options = ClientOptions.from_env()

    client = SlackClient(os.environ["SLACK_BOT_TOKEN"], options)

    loader = PluginLoader(allowed=config.get("controllers"))
    intro_name = config.get("intro_controller")
    for plugin in loader.load_all():
        client.add_controller(plugin.controller)
        for callback_id, handler in plugin.action_handlers.items():
            client.add_action_handler(callback_id, handler)

        if not isinstance(plugin.controller, IntroController):
            continue
        if intro_name == plugin.name or (intro_name is None and client.intro_handler is None):
            client.set_intro_handler(plugin.controller)
            logger.info(f"Intro handler: {plugin.name}")

    bots = config.get("bots") or [{
        "team_id": os.getenv("SLACK_TEAM_ID", ""),
        "app_token_env": "SLACK_APP_TOKEN",
    }]
    for entry in bots:
        bot_token = os.getenv(entry["bot_token_env"]) if "bot_token_env" in entry else None
        app_token = os.getenv(entry.get("app_token_env", "SLACK_APP_TOKEN"))
        client.add_bot(entry["team_id"], bot_token=bot_token, app_token=app_token)
        logger.info(f"Added bot for team '{entry['team_id']}'")

    return client


def main(argv=None):
    """Start the runtime and block until SIGINT/SIGTERM."""
    args = parse_args(argv)
    config = load_config(args.config)
    load_environment(config.get("env_file"))

    try:
        client = build_client(config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    def shutdown(signum, frame):
        logger.info("Shutting down...")
        error = client.stop()
        if error is not None:
            logger.error(f"Error during shutdown: {error}")

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info("Bot is running! Press Ctrl+C to stop.")
    try:
        client.run()
    except WebhookError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
