"""
SKSCP — Soul Copy Protocol.

Back up, verify, and restore an agent's soul: the handful of
identity files (SOUL.md, MEMORY.md, memory/*, ...) that make
the agent who they are. Archives travel between machines over
STP, a tiny bearer-authenticated HTTP protocol.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

SOUL_HOME = os.environ.get("SKSCP_HOME", "~/.skscp")

PROTOCOL = "stp/1.0"
MANIFEST_VERSION = "1.0"
MANIFEST_NAME = "manifest.json"
SOUL_SUFFIX = ".soul"
