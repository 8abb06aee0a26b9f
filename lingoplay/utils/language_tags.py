import re
from typing import Iterable, Optional

# BCP-47-like tag: primary subtag plus optional region/script subtags
LANG_TAG_PATTERN = re.compile(r'^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8}){0,2}$')

ENGLISH = 'en'
JAPANESE = 'ja'


def is_valid_tag(tag: str) -> bool:
    return isinstance(tag, str) and bool(LANG_TAG_PATTERN.match(tag))


def tags_match(available: str, requested: str) -> bool:
    """
    Prefix match in both directions: 'en' matches 'en-US' and 'en-US' matches 'en'.
    Prefixes stop at subtag boundaries, so 'fi' does not match 'fil'.
    """
    if not available or not requested:
        return False
    a = available.lower()
    r = requested.lower()
    return a == r or a.startswith(r + '-') or r.startswith(a + '-')


def find_best_match(available_tags: Iterable[str], requested: str) -> Optional[str]:
    """Exact tag if available, otherwise the first prefix-compatible one."""
    tags = list(available_tags)
    for tag in tags:
        if tag.lower() == requested.lower():
            return tag
    for tag in tags:
        if tags_match(tag, requested):
            return tag
    return None


def is_japanese(tag: Optional[str]) -> bool:
    return bool(tag) and tags_match(tag, JAPANESE)


def parse_language_hint(message: str) -> list:
    """
    Extract the tag list from a provider error such as
    "... Available languages: en, es-419 fr".
    """
    match = re.search(r'Available languages:\s*(.+)', message or '')
    if not match:
        return []
    hinted = []
    for tag in re.split(r'[,\s]+', match.group(1)):
        tag = tag.strip().rstrip('.')
        if is_valid_tag(tag) and tag not in hinted:
            hinted.append(tag)
    return hinted
