"""Static HTML table of the current batch of posts."""

import json
from html import escape

from .config import PageConfig
from .logging_config import create_execution_logger
from .models import DisclosurePost
from .posts import canonical_timestamp

STYLE = """\
    body { font-family: Arial, sans-serif; margin: 0; padding: 20px; }
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #f2f2f2; }"""


def render_row(post: DisclosurePost) -> str:
    discovered = canonical_timestamp(post.discovered)
    return (
        "        <tr>"
        f"<td>{escape(post.group_name)}</td>"
        f"<td>{escape(post.post_title)}</td>"
        f'<td><time datetime="{escape(discovered)}">{escape(discovered)}</time></td>'
        "</tr>"
    )


def render_script(feed_href: str, refresh_seconds: int) -> str:
    """Client-side refresh: re-read the feed and rebuild the table body.

    Rows come from each item's title (split on the first ": ") and pubDate.
    """
    feed_url = json.dumps(feed_href).replace("</", "<\\/")
    return f"""\
  <script>
    const FEED_URL = {feed_url};
    const REFRESH_MS = {refresh_seconds * 1000};

    function localizeTimes(root) {{
      root.querySelectorAll("time[datetime]").forEach((el) => {{
        const date = new Date(el.getAttribute("datetime"));
        if (!isNaN(date)) {{
          el.textContent = date.toLocaleString();
        }}
      }});
    }}

    function cell(text) {{
      const td = document.createElement("td");
      td.textContent = text;
      return td;
    }}

    function refreshContent() {{
      fetch(FEED_URL, {{ cache: "no-store" }})
        .then((response) => response.text())
        .then((text) => new DOMParser().parseFromString(text, "text/xml"))
        .then((doc) => {{
          const tbody = document.querySelector("tbody");
          tbody.replaceChildren();
          doc.querySelectorAll("item").forEach((item) => {{
            const title = item.querySelector("title").textContent;
            const pubDate = item.querySelector("pubDate").textContent;
            const sep = title.indexOf(": ");
            const row = document.createElement("tr");
            row.appendChild(cell(sep < 0 ? title : title.slice(0, sep)));
            row.appendChild(cell(sep < 0 ? "" : title.slice(sep + 2)));
            const td = document.createElement("td");
            const time = document.createElement("time");
            const date = new Date(pubDate);
            time.setAttribute("datetime", isNaN(date) ? pubDate : date.toISOString());
            time.textContent = pubDate;
            td.appendChild(time);
            row.appendChild(td);
            tbody.appendChild(row);
          }});
          localizeTimes(tbody);
        }})
        .catch((err) => console.error("Feed refresh failed:", err));
    }}

    document.addEventListener("DOMContentLoaded", () => localizeTimes(document));
    setInterval(refreshContent, REFRESH_MS);
  </script>"""


def render_html(
    posts: list[DisclosurePost],
    config: PageConfig,
    execution_id: str | None = None,
) -> str:
    """Render the HTML page listing ``posts``, one table row each."""
    logger = create_execution_logger("html_renderer", execution_id)
    rows = "\n".join(render_row(post) for post in posts)
    title = escape(config.title)

    page = f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <link rel="alternate" type="application/rss+xml" title="{title}" href="{escape(config.feed_href)}">
  <style>
{STYLE}
  </style>
{render_script(config.feed_href, config.refresh_seconds)}
</head>
<body>
  <h1>{title}</h1>
  <table>
    <thead>
      <tr>
        <th>Group Name</th>
        <th>Post Title</th>
        <th>Discovered</th>
      </tr>
    </thead>
    <tbody>
{rows}
    </tbody>
  </table>
</body>
</html>
"""
    logger.debug("Rendered HTML page", rows_count=len(posts))
    return page
