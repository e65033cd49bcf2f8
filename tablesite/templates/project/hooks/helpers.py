"""Template helpers.

Every public function defined here is available in the theme templates,
both as a function (``{{ excerpt(item.description) }}``) and as a filter
(``{{ item.description|excerpt }}``).
"""


def excerpt(text, length=120):
    text = str(text or "")
    if len(text) <= length:
        return text
    return text[:length].rsplit(" ", 1)[0] + "..."
