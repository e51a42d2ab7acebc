"""
Browser session exports.
"""

from aiqa.browser.driver import PlaywrightDriver

__all__ = ["PlaywrightDriver"]
