"""Result filters applied to provider hits before they are returned or stored."""

from urllib.parse import urlparse

from bizfinder.search.schemas import SearchFilters

DIRECTORY_HOSTS = (
    "directory.", "listings.", "yellowpages", "whitepages", "superpages",
    "citysearch", "local.com", "hotfrog", "indeed", "glassdoor", "zoominfo",
    "crunchbase", "linkedin.com", "facebook.com", "twitter.com", "instagram.com",
    "pinterest.com", "tiktok.com", "youtube.com", "google.com", "bing.com", "yahoo.com",
)

FORUM_HOSTS = ("reddit.com", "forum.", "forums.", "community.", "discussion.")
FORUM_PATHS = ("/forum/", "/forums/", "/community/", "/discussion/")

# Platforms not already covered by the directory list
SOCIAL_MEDIA_HOSTS = (
    "snapchat.com", "whatsapp.com", "telegram.org", "discord.com", "reddit.com",
    "tumblr.com", "vine.co", "vimeo.com", "dailymotion.com", "twitch.tv",
)

NEWS_HOSTS = ("news.", "reuters.com", "bloomberg.com", "cnn.com", "bbc.com", "nytimes.com")

BLOG_HOSTS = ("blog.", "medium.com", "wordpress.com", "blogspot.com")
BLOG_PATHS = ("/blog/",)


def _contains_any(value: str, needles: tuple[str, ...]) -> bool:
    return any(needle in value for needle in needles)


def passes_filters(link: str, filters: SearchFilters) -> bool:
    """Return False when the link falls in an excluded category.

    Links that cannot be parsed are kept.
    """
    try:
        parsed = urlparse(link or "")
    except ValueError:
        return True

    hostname = (parsed.hostname or "").lower()
    pathname = parsed.path.lower()

    if filters.exclude_directories and _contains_any(hostname, DIRECTORY_HOSTS):
        return False

    if filters.exclude_forums and (
        _contains_any(hostname, FORUM_HOSTS) or _contains_any(pathname, FORUM_PATHS)
    ):
        return False

    if filters.exclude_social_media and _contains_any(hostname, SOCIAL_MEDIA_HOSTS):
        return False

    if filters.exclude_news_sites and _contains_any(hostname, NEWS_HOSTS):
        return False

    if filters.exclude_blogs and (
        _contains_any(hostname, BLOG_HOSTS) or _contains_any(pathname, BLOG_PATHS)
    ):
        return False

    return True
