"""
Noise Feed Page Builder
This script fetches the configured RSS/Atom feeds in parallel, keeps the
entries from the last few weeks, and writes them newest first to a static
HTML page.
"""

import datetime
import json
import logging
import os
import sys
from typing import Dict, Any, List, Optional, cast

from noise_feed.deadline import Deadline
from noise_feed.parsers.rss import RSSParser, DEFAULT_USER_AGENT
from noise_feed.services.aggregator import aggregate
from noise_feed.services.page_service import PageService, RenderError, DEFAULT_TITLE


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file."""
    # Build absolute path relative to this script
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using empty config.", config_path)
        return {"feeds": []}


CONFIG: Dict[str, Any] = load_config()


def run(config: Optional[Dict[str, Any]] = None) -> str:
    """Fetches all feeds and writes the page. Returns the page path."""
    config = CONFIG if config is None else config
    feeds = cast(List[str], config.get("feeds", []))
    relevant_days = cast(int, config.get("relevant_days", 60))
    timeout = cast(float, config.get("timeout_seconds", 60))

    # Raises ValueError on a non-positive timeout
    deadline = Deadline(timeout)
    cutoff = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(
        days=relevant_days
    )
    logger.info(
        "--- Building page for %s (posts since %s) ---",
        datetime.datetime.now().strftime("%Y-%m-%d"),
        cutoff.strftime("%Y-%m-%d"),
    )

    parser = RSSParser(user_agent=config.get("user_agent", DEFAULT_USER_AGENT))
    posts = aggregate(feeds, deadline, cutoff, parser=parser)

    page_service = PageService(
        config.get("output_dir", "docs"),
        config.get("output_file", "index.html"),
        title=config.get("page_title", DEFAULT_TITLE),
    )
    return page_service.write_page(posts)


def main():
    """Main execution entry point."""
    try:
        run()
    except (ValueError, RenderError) as e:
        logger.error("Build failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
