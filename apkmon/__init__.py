"""apkmon - reports pending Alpine package upgrades as a monitoring measurement"""

__version__ = "0.1.0"
