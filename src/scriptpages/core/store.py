"""Flat-file page storage.

Each page is a single ``{title}.md`` file inside the pages directory.
Titles are validated before any filesystem access so a title can never
address a file outside that directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from scriptpages.core.types import PageTitle

logger = logging.getLogger(__name__)

PAGE_SUFFIX = ".md"
PAGE_FILE_MODE = 0o600


class InvalidTitleError(ValueError):
    """Title cannot be used as a storage key."""


class PageNotFoundError(FileNotFoundError):
    """Page file is missing or unreadable."""


@dataclass(frozen=True)
class Page:
    """Stored page: title plus raw markdown body."""

    title: str
    body: str


def validate_title(title: str) -> PageTitle:
    """Check that a title is safe to use as a file name fragment.

    Args:
        title: Page title as received from a URL or the command line

    Returns:
        The same title, typed as PageTitle

    Raises:
        InvalidTitleError: If the title is empty, hidden, contains a path
            separator, a parent-directory segment or a NUL byte
    """
    if not title:
        raise InvalidTitleError("Page title must not be empty")
    if "/" in title or "\\" in title or (os.altsep and os.altsep in title):
        raise InvalidTitleError(f"Page title must not contain path separators: {title!r}")
    if ".." in title:
        raise InvalidTitleError(f"Page title must not contain '..': {title!r}")
    if "\x00" in title:
        raise InvalidTitleError("Page title must not contain NUL bytes")
    if title.startswith("."):
        raise InvalidTitleError(f"Page title must not start with '.': {title!r}")
    return PageTitle(title)


class PageStore:
    """Loads and saves pages as markdown files in one directory."""

    def __init__(self, directory: Path) -> None:
        """Initialize store.

        Args:
            directory: Directory holding the ``.md`` page files
        """
        self._directory = directory

    @property
    def directory(self) -> Path:
        """Directory holding the page files."""
        return self._directory

    def path_for(self, title: str) -> Path:
        """Return the file path for a title after validating it."""
        safe_title = validate_title(title)
        return self._directory / f"{safe_title}{PAGE_SUFFIX}"

    def load(self, title: str) -> Page:
        """Load a page by title.

        Args:
            title: Page title

        Returns:
            Page with the file content decoded as UTF-8

        Raises:
            InvalidTitleError: If the title is not path-safe
            PageNotFoundError: If the file is missing or cannot be read
        """
        path = self.path_for(title)
        try:
            body = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PageNotFoundError(f"Page not found: {title} ({e})") from e
        return Page(title=title, body=body)

    def save(self, page: Page) -> None:
        """Write a page to disk with owner-only permissions.

        The body is written as UTF-8 bytes without newline translation, so
        a later load returns exactly the same text.

        Raises:
            InvalidTitleError: If the title is not path-safe
            OSError: If the file cannot be written
        """
        path = self.path_for(page.title)
        data = page.body.encode("utf-8")
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PAGE_FILE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # O_CREAT mode is ignored for files that already exist
        os.chmod(path, PAGE_FILE_MODE)
        logger.info(f"Saved page {page.title!r} ({len(data)} bytes)")

    def exists(self, title: str) -> bool:
        """Check whether a page file exists for a valid title."""
        try:
            return self.path_for(title).is_file()
        except InvalidTitleError:
            return False

    def titles(self) -> list[str]:
        """List stored page titles, sorted."""
        if not self._directory.is_dir():
            return []
        return sorted(p.stem for p in self._directory.glob(f"*{PAGE_SUFFIX}") if p.is_file())
