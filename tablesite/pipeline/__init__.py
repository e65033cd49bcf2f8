"""Headless processing layer of tablesite.

``site_generator`` builds a site from a project directory; ``scaffold``
creates new project directories from the bundled template.
"""
