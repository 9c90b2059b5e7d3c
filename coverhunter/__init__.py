"""
coverhunter - ROM cover-art finder

Lists ROMs that have no cover image, searches an image provider for
candidate covers, and watches the cover folder so that dropped-in images
are normalized to PNG and checked off automatically.
"""

__version__ = "0.3.0"
