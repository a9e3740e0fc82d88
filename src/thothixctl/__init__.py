"""thothixctl - Thothix developer workflow CLI.
Thothix 개발 워크플로우 CLI.
"""

__version__ = "0.3.0"
