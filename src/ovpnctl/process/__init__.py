"""OS process discovery and termination for the OpenVPN binary."""

from ovpnctl.process.finder import ProcessFinder, PsutilProcessFinder
from ovpnctl.process.terminator import EscalatingTerminator

__all__ = ["EscalatingTerminator", "ProcessFinder", "PsutilProcessFinder"]
