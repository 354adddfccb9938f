"""
URL helpers for the templated endpoints advertised in a JMAP Session.

The ``downloadUrl``, ``uploadUrl`` and ``eventSourceUrl`` properties are
RFC 6570 level 1 URI templates: ``{name}`` placeholders that are replaced
by percent-encoded values.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from jmap.lib.error import ValidationError

_VARIABLE_RE = re.compile(r"\{([A-Za-z0-9_]+)\}")


def template_variables(template: str) -> set[str]:
    """Return the set of variable names used in ``template``."""
    return set(_VARIABLE_RE.findall(template))


def expand_url_template(template: str, **values) -> str:
    """Expand a level 1 URI template.

    Every variable in the template must be supplied; extra values are
    ignored.  Values are converted to strings and percent-encoded with no
    reserved characters left unescaped, as level 1 simple expansion
    requires.

    Example:
        >>> expand_url_template("https://x/{accountId}/{blobId}", accountId="a1", blobId="b 2")
        'https://x/a1/b%202'

    Raises:
        ValidationError: If a variable in the template has no value.
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in values or values[name] is None:
            raise ValidationError(reason=f"no value for URL template variable {name!r} in {template!r}")
        return quote(str(values[name]), safe="")

    return _VARIABLE_RE.sub(_replace, template)
