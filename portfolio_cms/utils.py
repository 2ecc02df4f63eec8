"""
Small helpers shared across the app.
"""
import re
import unicodedata

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(value):
    """
    Normalize a string into a URL-safe slug.

    Lowercases, folds accents to ASCII and turns every run of characters
    outside [a-z0-9] (whitespace, punctuation, underscores, hyphens) into a
    single hyphen.

        >>> slugify(" Hello World ")
        'hello-world'
        >>> slugify("a---b___c")
        'a-b-c'
    """
    value = unicodedata.normalize("NFKD", str(value))
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_ALPHANUMERIC.sub("-", value).strip("-")
