"""Image downloader hooks."""


def pre(url):
    """Called with the image URL of a row before it is fetched."""
    return url


async def post(path):
    """Called with the local file once an image is saved.

    Example: resize the image in place with Pillow.
    """
    return None
