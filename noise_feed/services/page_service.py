"""
Page service module for rendering and writing the aggregated feed page.

This module provides the PageService class which handles:
- Preparing the output directory
- Generating the static HTML page for the aggregated posts
- Writing the page to disk
"""

import datetime
import html
import logging
import os
from typing import List, Optional
from noise_feed.models import Post

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "NOISE | 聚合信息阅读"


class RenderError(Exception):
    """Raised when the page cannot be prepared or written."""


class PageService:
    """Service for rendering the aggregated posts into a static page."""

    _PAGE_STYLES = {
        "body": 'font-family: "Nanum Myeongjo", serif; line-height: 1.7;'
        " max-width: 800px; margin: auto;",
        "header": "padding: 20px 0; border-bottom: 1px solid #e0e0e0;",
        "header_p": "margin: 5px 0 0; color: #666; font-size: 14px;",
        "item": "padding-bottom: 16px;",
        "host": "color: #666;",
        "date": "color: #999; font-size: 12px; margin-left: 6px;",
    }

    def __init__(
        self, output_dir: str, output_file: str, title: str = DEFAULT_TITLE
    ):
        self.output_dir = output_dir
        self.output_file = output_file
        self.title = title

    @property
    def output_path(self) -> str:
        return os.path.join(self.output_dir, self.output_file)

    def prepare_output(self) -> None:
        """Creates the output directory if it does not exist."""
        try:
            os.makedirs(self.output_dir, mode=0o700, exist_ok=True)
        except OSError as e:
            raise RenderError(
                f"Cannot create output directory {self.output_dir}: {e}"
            ) from e

    def _render_item(self, post: Post) -> str:
        """Renders one list item."""
        link = html.escape(post.link)
        text = html.escape(post.title or post.link)
        date = post.published.strftime("%Y-%m-%d")
        return f"""
            <li style="{self._PAGE_STYLES['item']}">
                <a href="{link}">{text}</a>
                <span style="{self._PAGE_STYLES['host']}">({html.escape(post.host)})</span>
                <time style="{self._PAGE_STYLES['date']}"
                      datetime="{post.published.isoformat()}">{date}</time>
            </li>"""

    def generate_page_html(
        self, posts: List[Post], generated_at: Optional[datetime.datetime] = None
    ) -> str:
        """Generates the HTML document for the posts, in the order given."""
        generated_at = generated_at or datetime.datetime.now(datetime.timezone.utc)
        title = html.escape(self.title)
        html_content = f"""<!DOCTYPE html>
<html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <title>{title}</title>
    </head>
    <body style="{self._PAGE_STYLES['body']}">
        <div style="{self._PAGE_STYLES['header']}">
            <h2>{title}</h2>
            <p style="{self._PAGE_STYLES['header_p']}">{len(posts)} posts,
                updated {generated_at.strftime("%Y-%m-%d %H:%M UTC")}</p>
        </div>
        <ol>"""

        html_content += "".join(self._render_item(post) for post in posts)

        html_content += """
        </ol>
    </body>
</html>
"""
        return html_content

    def write_page(self, posts: List[Post]) -> str:
        """Renders the posts and writes the page. Returns the written path."""
        self.prepare_output()
        html_content = self.generate_page_html(posts)
        try:
            with open(self.output_path, "w", encoding="utf-8") as f:
                f.write(html_content)
        except OSError as e:
            raise RenderError(f"Cannot write {self.output_path}: {e}") from e
        logger.info("Wrote %d posts to %s.", len(posts), self.output_path)
        return self.output_path
