"""
adbhost - Client for the Android Debug Bridge host protocol.

Talks to a running ADB daemon over its loopback TCP port to:
- List attached devices
- Run shell commands and read device properties
- Look up process ids
- Wake and unlock the screen
- Stream and install application packages
"""

__version__ = "0.1.0"
__author__ = "adbhost Contributors"
